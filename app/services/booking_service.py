import logging
import uuid
from decimal import Decimal
from typing import Iterable
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import ConflictError, NotFoundError, PermissionDeniedError, UpstreamError, ValidationError
from app.models.attendee import Attendee
from app.models.booking import Booking, BookingItem, BOOKING_STATUSES
from app.models.event import Event
from app.models.organizer import Organizer
from app.models.ticket_type import TicketType
from app.models.user import User
from app.schemas.booking import BookingCreate
from app.services.audit_service import log_audit
from app.services.ticket_service import reserve_sold

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_ORDER = 10

# pending is the only non-terminal state
ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": set(),
    "cancelled": set(),
}


def calculate_total_price(lines: Iterable[tuple[Decimal, int]]) -> Decimal:
    """Sum of unit_price * quantity."""
    return sum((Decimal(str(price)) * int(qty) for price, qty in lines), Decimal("0"))


def create_booking(db: Session, user: User, body: BookingCreate) -> Booking:
    if not body.tickets:
        raise ValidationError("At least one ticket is required", details=[{"field": "tickets", "message": "must not be empty"}])
    if not body.attendees:
        raise ValidationError("At least one attendee is required", details=[{"field": "attendees", "message": "must not be empty"}])

    event = db.get(Event, body.event_id)
    if not event:
        raise NotFoundError("Event not found")
    if event.status != "published":
        raise ValidationError("Event is not available for booking")

    # Price every line from the stored ticket type, never from the client.
    # Repeated lines for one ticket type are merged so the limits apply to the order total.
    quantities: dict[str, int] = {}
    types: dict[str, TicketType] = {}
    for sel in body.tickets:
        tt = types.get(sel.ticket_type_id) or db.get(TicketType, sel.ticket_type_id)
        if not tt or tt.event_id != event.id:
            raise ValidationError(f"Invalid ticket type: {sel.ticket_type_id}", details=[{"field": "tickets.ticket_type_id", "message": "unknown ticket type for this event"}])
        if sel.price is not None and Decimal(sel.price) != Decimal(tt.price):
            logger.warning("Client price %s for ticket type %s ignored (stored %s)", sel.price, tt.id, tt.price)
        types[tt.id] = tt
        quantities[tt.id] = quantities.get(tt.id, 0) + sel.quantity

    lines: list[tuple[TicketType, int]] = []
    for tt_id, qty in quantities.items():
        tt = types[tt_id]
        max_per_order = tt.max_per_order or DEFAULT_MAX_PER_ORDER
        if qty > max_per_order:
            raise ValidationError(f"At most {max_per_order} tickets of {tt.name} per order", details=[{"field": "tickets.quantity", "message": f"must be <= {max_per_order}"}])
        if qty > tt.remaining:
            raise ConflictError(f"Not enough tickets available for {tt.name}")
        lines.append((tt, qty))

    total = calculate_total_price((tt.price, qty) for tt, qty in lines)

    booking = Booking(
        id=str(uuid.uuid4()),
        user_id=user.id,
        event_id=event.id,
        status="pending",
        total_price=total,
        customer_name=body.customer_name or user.full_name or body.attendees[0].name,
        customer_email=body.customer_email or user.email or body.attendees[0].email,
        customer_phone=body.customer_phone,
        special_requests=body.special_requests,
        idempotency_key=str(uuid.uuid4()),
    )
    # booking, items and attendees commit together or not at all
    try:
        db.add(booking)
        for tt, qty in lines:
            unit = Decimal(tt.price)
            db.add(BookingItem(
                id=str(uuid.uuid4()),
                booking_id=booking.id,
                ticket_type_id=tt.id,
                quantity=qty,
                unit_price=unit,
                total_price=unit * qty,
            ))
        for a in body.attendees:
            db.add(Attendee(
                id=str(uuid.uuid4()),
                booking_id=booking.id,
                name=a.name.strip(),
                email=a.email.strip().lower(),
                phone=a.phone or "",
            ))
        log_audit(db, actor_user_id=user.id, action="booking.created", entity_type="booking", entity_id=booking.id, details={"total": str(total)})
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Booking creation failed for event %s: %s", event.id, e)
        raise UpstreamError("Failed to create booking")

    db.refresh(booking)
    logger.info("Booking %s created (pending) total=%s", booking.id, total)
    return booking


def serialize_booking(b: Booking) -> dict:
    ev = b.event
    return {
        "id": b.id,
        "user_id": b.user_id,
        "event_id": b.event_id,
        "status": b.status,
        "total_price": b.total_price,
        "customer_name": b.customer_name,
        "customer_email": b.customer_email,
        "customer_phone": b.customer_phone,
        "special_requests": b.special_requests,
        "created_at": b.created_at.isoformat() if b.created_at else None,
        "events": {
            "title": ev.title,
            "start_date": ev.start_date,
            "start_time": ev.start_time,
            "location_name": ev.location_name,
        } if ev else None,
        "booking_items": [
            {
                "ticket_type_id": i.ticket_type_id,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "total_price": i.total_price,
                "ticket_types": {"name": i.ticket_type.name} if i.ticket_type else None,
            }
            for i in b.items
        ],
        "attendees": [{"name": a.name, "email": a.email, "phone": a.phone} for a in b.attendees],
    }


def _load(db: Session, booking_id: str) -> Booking:
    b = (
        db.query(Booking)
        .options(selectinload(Booking.items), selectinload(Booking.attendees))
        .filter(Booking.id == booking_id)
        .first()
    )
    if not b:
        raise NotFoundError("Booking not found")
    return b


def _is_event_organizer(db: Session, user: User, b: Booking) -> bool:
    org = db.query(Organizer).filter(Organizer.user_id == user.id).first()
    return bool(org and b.event and b.event.organizer_id == org.id)


def list_my_bookings(db: Session, user: User) -> list[dict]:
    items = (
        db.query(Booking)
        .options(selectinload(Booking.items), selectinload(Booking.attendees))
        .filter(Booking.user_id == user.id)
        .order_by(Booking.created_at.desc())
        .all()
    )
    return [serialize_booking(b) for b in items]


def list_organizer_bookings(db: Session, user: User, status: str | None = None) -> list[dict]:
    org = db.query(Organizer).filter(Organizer.user_id == user.id).first()
    if not org:
        raise PermissionDeniedError("Organizer profile required")
    q = (
        db.query(Booking)
        .join(Event, Event.id == Booking.event_id)
        .options(selectinload(Booking.items), selectinload(Booking.attendees))
        .filter(Event.organizer_id == org.id)
    )
    if status:
        q = q.filter(Booking.status == status)
    return [serialize_booking(b) for b in q.order_by(Booking.created_at.desc()).all()]


def get_booking_for_user(db: Session, user: User, booking_id: str) -> Booking:
    b = _load(db, booking_id)
    if b.user_id != user.id and not _is_event_organizer(db, user, b):
        raise PermissionDeniedError("You do not have access to this booking")
    return b


def transition(db: Session, b: Booking, status: str, actor: str, details: dict | None = None) -> bool:
    """Move a booking along the state machine. Returns False if it is already there.

    Does not commit; callers own the transaction.
    """
    if status not in BOOKING_STATUSES:
        raise ValidationError("Invalid status. Must be: pending, confirmed, or cancelled")
    if b.status == status:
        return False
    if status not in ALLOWED_TRANSITIONS[b.status]:
        raise ConflictError(f"Cannot change booking status from {b.status} to {status}")
    old = b.status
    b.status = status
    log_audit(db, actor_user_id=actor, action=f"booking.{status}", entity_type="booking", entity_id=b.id, details={"from": old, **(details or {})})
    logger.info("Booking %s %s -> %s (by %s)", b.id, old, status, actor)
    return True


def confirm_booking(db: Session, b: Booking, actor: str, details: dict | None = None) -> bool:
    """pending -> confirmed, counting the tickets as sold in the same transaction.

    Each ticket type is incremented with a conditional update, so two bookings
    racing for the last seats cannot both succeed. Raises ConflictError when
    inventory ran out; the caller must roll back. Does not commit.
    """
    if b.status == "confirmed":
        return False
    if b.status != "pending":
        raise ConflictError(f"Cannot change booking status from {b.status} to confirmed")
    for item in b.items:
        if not reserve_sold(db, item.ticket_type_id, item.quantity):
            name = item.ticket_type.name if item.ticket_type else item.ticket_type_id
            raise ConflictError(f"Not enough tickets available for {name}")
    return transition(db, b, "confirmed", actor=actor, details=details)


def update_status(db: Session, user: User, booking_id: str, status: str) -> Booking:
    """Owners may cancel their own pending booking; event organizers may cancel or confirm."""
    b = get_booking_for_user(db, user, booking_id)
    if status == "confirmed":
        if not _is_event_organizer(db, user, b):
            raise PermissionDeniedError("Only the event organizer can confirm a booking")
        try:
            confirm_booking(db, b, actor=user.id)
        except ConflictError:
            db.rollback()
            raise
    else:
        transition(db, b, status, actor=user.id)
    db.commit()
    db.refresh(b)
    return b


def cancel_booking(db: Session, user: User, booking_id: str) -> Booking:
    return update_status(db, user, booking_id, "cancelled")
