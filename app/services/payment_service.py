"""Stripe hosted checkout and webhook handling for bookings.

Every state change driven by Stripe goes through ``handle_webhook``: the
signature is checked first, the event id is recorded in the same transaction
as its effects, and booking transitions only ever leave ``pending``.
"""
import json
import logging
from decimal import Decimal, ROUND_HALF_UP

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, PermissionDeniedError, SignatureError, UpstreamError, ValidationError
from app.models.booking import Booking
from app.models.ticket_type import TicketType
from app.models.user import User
from app.models.webhook_event import ProcessedWebhookEvent
from app.schemas.payments import CheckoutCreateRequest
from app.services.audit_service import log_audit
from app.services.booking_service import confirm_booking, transition

logger = logging.getLogger(__name__)

stripe.api_key = settings.STRIPE_SECRET_KEY

SUCCEEDED_EVENTS = ("checkout.session.completed", "payment_intent.succeeded")
FAILED_EVENTS = ("payment_intent.payment_failed", "checkout.session.expired")


def to_cents(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_checkout_params(b: Booking, success_url: str, cancel_url: str) -> dict:
    event = b.event
    line_items = []
    for item in b.items:
        tt = item.ticket_type
        product = {"name": f"{event.title} - {tt.name if tt else 'Ticket'}"}
        if tt and tt.description:
            product["description"] = tt.description
        line_items.append({
            "price_data": {
                "currency": settings.STRIPE_CURRENCY,
                "product_data": product,
                "unit_amount": to_cents(item.unit_price),
            },
            "quantity": item.quantity,
        })

    metadata = {"booking_id": b.id, "event_id": event.id}
    payment_intent_data = {"metadata": dict(metadata)}
    org = event.organizer
    if org and org.stripe_account_id:
        fee = Decimal(str(b.total_price)) * Decimal(str(settings.PLATFORM_FEE_PERCENT)) / 100
        payment_intent_data["application_fee_amount"] = to_cents(fee)
        payment_intent_data["transfer_data"] = {"destination": org.stripe_account_id}

    return {
        "payment_method_types": ["card"],
        "line_items": line_items,
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "customer_email": b.customer_email,
        "payment_intent_data": payment_intent_data,
    }


def create_checkout_session(db: Session, user: User, req: CheckoutCreateRequest) -> dict:
    b = db.get(Booking, req.booking_id)
    if not b:
        raise NotFoundError("Booking not found")
    if b.user_id != user.id:
        raise PermissionDeniedError("You do not have access to this booking")
    if b.status != "pending":
        raise ValidationError("Booking is not available for payment")
    if not settings.STRIPE_SECRET_KEY:
        raise UpstreamError("Payments are not configured")

    base = settings.CLIENT_BASE_URL.rstrip("/")
    success_url = req.success_url or (
        f"{base}/events/{b.event.slug}/booking-success?session_id={{CHECKOUT_SESSION_ID}}&booking_id={b.id}"
    )
    cancel_url = req.cancel_url or f"{base}/events/{b.event.slug}"

    try:
        session = stripe.checkout.Session.create(
            **build_checkout_params(b, success_url, cancel_url),
            idempotency_key=b.idempotency_key,
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout creation failed for booking %s: %s", b.id, e)
        raise UpstreamError(e.user_message or getattr(e, "_message", None) or "Payment provider error")

    b.stripe_checkout_session_id = session.id
    db.commit()
    return {"checkout_url": session.url, "session_id": session.id}


def verify_webhook_signature(payload: bytes, signature: str | None) -> dict:
    """Return the event as a plain dict, or raise SignatureError."""
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise SignatureError("webhook secret not configured")
    if not signature:
        raise SignatureError("missing Stripe-Signature header")
    try:
        stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        raise SignatureError(str(e))
    except ValueError as e:
        raise SignatureError(f"invalid payload: {e}")
    return json.loads(payload)


def _find_booking(db: Session, obj: dict) -> Booking | None:
    booking_id = (obj.get("metadata") or {}).get("booking_id")
    if booking_id:
        return db.get(Booking, booking_id)
    if obj.get("object") == "checkout.session" and obj.get("id"):
        return db.query(Booking).filter(Booking.stripe_checkout_session_id == obj["id"]).first()
    return None


def _has_inventory(db: Session, b: Booking) -> bool:
    for item in b.items:
        remaining = db.query(TicketType.quantity_available - TicketType.quantity_sold).filter(TicketType.id == item.ticket_type_id).scalar()
        if remaining is None or remaining < item.quantity:
            return False
    return True


def _on_payment_succeeded(db: Session, b: Booking, obj: dict, event_type: str) -> str:
    if b.status != "pending":
        logger.info("Booking %s already %s; ignoring %s", b.id, b.status, event_type)
        return "noop"
    if obj.get("object") == "checkout.session":
        b.stripe_checkout_session_id = obj.get("id") or b.stripe_checkout_session_id
        b.stripe_payment_intent_id = obj.get("payment_intent") or b.stripe_payment_intent_id
    elif obj.get("object") == "payment_intent":
        b.stripe_payment_intent_id = obj.get("id") or b.stripe_payment_intent_id

    if not _has_inventory(db, b):
        transition(db, b, "cancelled", actor="stripe", details={"event": event_type, "reason": "sold_out"})
        logger.warning("Booking %s paid but tickets sold out; cancelling and refunding", b.id)
        return "refund"
    # A concurrent confirmation can still win the race here; ConflictError rolls back and Stripe retries.
    confirm_booking(db, b, actor="stripe", details={"event": event_type})
    return "confirmed"


def _on_payment_failed(db: Session, b: Booking, obj: dict, event_type: str) -> str:
    if b.status != "pending":
        logger.info("Booking %s already %s; ignoring %s", b.id, b.status, event_type)
        return "noop"
    transition(db, b, "cancelled", actor="stripe", details={"event": event_type})
    return "cancelled"


def handle_webhook(db: Session, payload: bytes, signature: str | None) -> dict:
    event = verify_webhook_signature(payload, signature)
    event_id = event.get("id") or ""
    event_type = event.get("type") or ""
    logger.info("Received webhook event: %s (%s)", event_type, event_id)

    if db.get(ProcessedWebhookEvent, event_id):
        return {"received": True, "duplicate": True}

    obj = (event.get("data") or {}).get("object") or {}
    outcome = "ignored"
    b = None
    if event_type in SUCCEEDED_EVENTS or event_type in FAILED_EVENTS:
        b = _find_booking(db, obj)
        if not b:
            logger.warning("Webhook %s (%s) references no known booking", event_type, event_id)
        elif event_type in SUCCEEDED_EVENTS:
            try:
                outcome = _on_payment_succeeded(db, b, obj, event_type)
            except ConflictError as e:
                db.rollback()
                logger.error("Confirming booking %s failed: %s", b.id, e)
                raise UpstreamError("Booking confirmation conflicted; retry later")
        else:
            outcome = _on_payment_failed(db, b, obj, event_type)
    else:
        logger.info("Unhandled event type: %s", event_type)

    db.add(ProcessedWebhookEvent(id=event_id, event_type=event_type, booking_id=b.id if b else None))
    try:
        db.commit()
    except IntegrityError:
        # the same event raced in on another worker and won
        db.rollback()
        return {"received": True, "duplicate": True}

    if outcome == "confirmed":
        enqueue_confirmation_email(b.id)
    elif outcome == "refund":
        refund_booking(db, b)
    return {"received": True, "outcome": outcome}


def refund_booking(db: Session, b: Booking) -> bool:
    """Best-effort refund of a booking's payment."""
    if not b.stripe_payment_intent_id:
        logger.warning("Booking %s has no payment intent to refund", b.id)
        return False
    try:
        stripe.Refund.create(payment_intent=b.stripe_payment_intent_id, idempotency_key=f"refund-{b.id}")
    except stripe.StripeError as e:
        logger.error("Refund failed for booking %s: %s", b.id, e)
        return False
    log_audit(db, actor_user_id="stripe", action="booking.refunded", entity_type="booking", entity_id=b.id,
              details={"payment_intent": b.stripe_payment_intent_id})
    db.commit()
    return True


def enqueue_confirmation_email(booking_id: str) -> None:
    """Fire-and-forget: the confirmation email never blocks or fails a payment."""
    from app.tasks.jobs import send_booking_confirmation
    try:
        send_booking_confirmation.delay(booking_id)
    except Exception as e:  # broker unavailable
        logger.error("Could not enqueue confirmation email for booking %s: %s", booking_id, e)


def payment_health() -> dict:
    return {
        "stripe_configured": bool(settings.STRIPE_SECRET_KEY),
        "webhook_configured": bool(settings.STRIPE_WEBHOOK_SECRET),
        "currency": settings.STRIPE_CURRENCY,
    }
