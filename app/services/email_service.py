import base64
import html
import logging
import smtplib
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from email.message import EmailMessage

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError
from app.models.booking import Booking
from app.models.email_log import EmailLog
from app.schemas.email import ConfirmationEmailRequest, EmailAttendee, EmailTicketLine

logger = logging.getLogger(__name__)


def queue_email(db: Session, to_email: str, subject: str, body: str, html_body: str | None = None,
                related_booking_id: str = "", attachments: list[tuple[str, bytes, str]] | None = None) -> EmailLog:
    """Queue and attempt immediate send. Bodies are stored so the worker can retry on failure.

    attachments: list of (filename, content_bytes, mime_type)
    """
    log = EmailLog(
        id=str(uuid.uuid4()),
        to_email=to_email,
        subject=subject,
        body=body,
        html_body=html_body,
        status="queued",
        related_booking_id=related_booking_id,
    )
    db.add(log)
    db.commit()

    try:
        send_email(to_email, subject, body, html_body=html_body, attachments=attachments or [])
        log.status = "sent"
        log.sent_at = datetime.now(timezone.utc)
        log.error = None
    except (OSError, smtplib.SMTPException, requests.RequestException, RuntimeError) as e:
        # Worker will retry via process_email_queue
        logger.error("Email to %s failed: %s", to_email, e)
        log.status = "failed"
        log.error = str(e)
    db.commit()
    return log


def send_email(to_email: str, subject: str, body: str, html_body: str | None = None,
               attachments: list[tuple[str, bytes, str]] | None = None):
    """Send email via SendGrid if configured, otherwise SMTP (MailHog recommended for local)."""
    attachments = attachments or []

    if settings.SENDGRID_API_KEY:
        _send_via_sendgrid(to_email, subject, body, html_body, attachments)
        return

    msg = EmailMessage()
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.SMTP_FROM}>"
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    for filename, content, mime in attachments:
        maintype, subtype = (mime.split("/", 1) + ["octet-stream"])[:2]
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


def _send_via_sendgrid(to_email: str, subject: str, body: str, html_body: str | None,
                       attachments: list[tuple[str, bytes, str]]):
    from_email = settings.SENDGRID_FROM_EMAIL or settings.SMTP_FROM
    content = [{"type": "text/plain", "value": body}]
    if html_body:
        content.append({"type": "text/html", "value": html_body})
    payload = {
        "personalizations": [{"to": [{"email": to_email}]}],
        "from": {"email": from_email, "name": settings.EMAIL_FROM_NAME},
        "subject": subject,
        "content": content,
    }

    if attachments:
        payload["attachments"] = [
            {
                "content": base64.b64encode(content).decode("utf-8"),
                "type": mime,
                "filename": filename,
                "disposition": "attachment",
            }
            for filename, content, mime in attachments
        ]

    r = requests.post(
        "https://api.sendgrid.com/v3/mail/send",
        json=payload,
        headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
        timeout=20,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"SendGrid error {r.status_code}: {r.text}")


def process_pending_emails(db: Session, limit: int = 50) -> dict:
    """Process up to `limit` queued or failed emails; retry send and update status. Returns counts."""
    pending = (
        db.query(EmailLog)
        .filter(EmailLog.status.in_(["queued", "failed"]), EmailLog.body.isnot(None), EmailLog.body != "")
        .order_by(EmailLog.created_at.asc())
        .limit(limit)
        .all()
    )
    sent, failed = 0, 0
    for log in pending:
        try:
            send_email(log.to_email, log.subject, log.body, html_body=log.html_body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            log.error = None
            sent += 1
        except (OSError, smtplib.SMTPException, requests.RequestException, RuntimeError) as e:
            log.status = "failed"
            log.error = str(e)
            failed += 1
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": failed}


def _money(v) -> str:
    return f"${Decimal(str(v)):.2f}"


def render_confirmation_email(data: ConfirmationEmailRequest) -> tuple[str, str, str]:
    """Return (subject, text, html) for a booking confirmation."""
    subject = f"Booking confirmed: {data.event_name}"

    lines = [
        "Dear Customer,",
        "",
        "Your booking has been confirmed!",
        "",
        f"Booking ID: {data.booking_id}",
        f"Event: {data.event_name}",
        f"Date: {data.event_date}",
        f"Total Amount: {_money(data.total_amount)}",
    ]
    if data.tickets:
        lines += ["", "Tickets:"]
        lines += [f"- {t.type}: {t.quantity}x {_money(t.price)} = {_money(t.price * t.quantity)}" for t in data.tickets]
    if data.attendees:
        lines += ["", "Attendees:"]
        lines += [f"- {a.name} ({a.email})" for a in data.attendees]
    lines += [
        "",
        "Please keep this email for your records. You may be asked to show it at the event.",
        "",
        "We look forward to seeing you at the event!",
        "",
        "Best regards,",
        f"{settings.EMAIL_FROM_NAME} Team",
    ]
    text = "\n".join(lines) + "\n"

    e = html.escape
    parts = [
        '<html><body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">',
        '<h1 style="color: #4F46E5;">Your booking is confirmed!</h1>',
        "<table>",
        f"<tr><td><strong>Booking ID</strong></td><td>{e(data.booking_id)}</td></tr>",
        f"<tr><td><strong>Event</strong></td><td>{e(data.event_name)}</td></tr>",
        f"<tr><td><strong>Date</strong></td><td>{e(data.event_date)}</td></tr>",
        f"<tr><td><strong>Total Amount</strong></td><td>{_money(data.total_amount)}</td></tr>",
        "</table>",
    ]
    if data.tickets:
        parts.append("<h2>Tickets</h2><ul>")
        parts += [f"<li>{e(t.type)}: {t.quantity} &times; {_money(t.price)} = {_money(t.price * t.quantity)}</li>" for t in data.tickets]
        parts.append("</ul>")
    if data.attendees:
        parts.append("<h2>Attendees</h2><ul>")
        parts += [f"<li>{e(a.name)} ({e(a.email)})</li>" for a in data.attendees]
        parts.append("</ul>")
    parts += [
        "<p>We look forward to seeing you at the event!</p>",
        f"<p>Best regards,<br>{e(settings.EMAIL_FROM_NAME)} Team</p>",
        "</body></html>",
    ]
    return subject, text, "\n".join(parts)


def send_confirmation(db: Session, data: ConfirmationEmailRequest) -> dict:
    """Render and hand off a confirmation email. Failure is reported, never raised."""
    subject, text, html_body = render_confirmation_email(data)
    log = queue_email(db, data.user_email, subject, text, html_body=html_body, related_booking_id=data.booking_id)
    if log.status == "sent":
        return {"success": True, "message": "Confirmation email sent successfully", "email_id": log.id}
    return {"success": False, "message": "Confirmation email queued for retry", "error": log.error, "email_id": log.id}


def confirmation_request_for_booking(db: Session, booking_id: str) -> ConfirmationEmailRequest:
    b = db.get(Booking, booking_id)
    if not b:
        raise NotFoundError("Booking not found")
    ev = b.event
    event_date = f"{ev.start_date} {ev.start_time}".strip() if ev else ""
    return ConfirmationEmailRequest(
        booking_id=b.id,
        user_email=b.customer_email,
        event_name=ev.title if ev else "",
        event_date=event_date,
        total_amount=b.total_price,
        tickets=[
            EmailTicketLine(type=i.ticket_type.name if i.ticket_type else i.ticket_type_id, quantity=i.quantity, price=i.unit_price)
            for i in b.items
        ],
        attendees=[EmailAttendee(name=a.name, email=a.email) for a in b.attendees],
    )
