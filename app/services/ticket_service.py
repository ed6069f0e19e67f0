import uuid
from sqlalchemy.orm import Session
from sqlalchemy import update

from app.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.models.booking import BookingItem
from app.models.event import Event
from app.models.ticket_type import TicketType
from app.models.user import User
from app.schemas.ticket import TicketTypeCreate, TicketTypeUpdate
from app.services.event_service import get_organizer_for_user


def serialize_ticket_type(t: TicketType) -> dict:
    return {
        "id": t.id,
        "event_id": t.event_id,
        "name": t.name,
        "description": t.description,
        "price": t.price,
        "quantity_available": t.quantity_available,
        "quantity_sold": t.quantity_sold,
        "remaining": t.remaining,
        "max_per_order": t.max_per_order,
        "sale_start_date": t.sale_start_date.isoformat() if t.sale_start_date else None,
        "sale_end_date": t.sale_end_date.isoformat() if t.sale_end_date else None,
    }


def _check_owner(db: Session, user: User, event_id: str) -> Event:
    e = db.get(Event, event_id)
    if not e:
        raise NotFoundError("Event not found")
    org = get_organizer_for_user(db, user)
    if e.organizer_id != org.id:
        raise PermissionDeniedError("You do not own this event")
    return e


def list_for_event(db: Session, event_id: str) -> list[dict]:
    if not db.get(Event, event_id):
        raise NotFoundError("Event not found")
    items = db.query(TicketType).filter(TicketType.event_id == event_id).order_by(TicketType.price.asc()).all()
    return [serialize_ticket_type(t) for t in items]


def create_ticket_type(db: Session, user: User, body: TicketTypeCreate) -> TicketType:
    _check_owner(db, user, body.event_id)
    t = TicketType(id=str(uuid.uuid4()), quantity_sold=0, **body.model_dump())
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def update_ticket_type(db: Session, user: User, ticket_type_id: str, body: TicketTypeUpdate) -> TicketType:
    t = db.get(TicketType, ticket_type_id)
    if not t:
        raise NotFoundError("Ticket type not found")
    _check_owner(db, user, t.event_id)
    changes = body.model_dump(exclude_unset=True)
    if "quantity_available" in changes and changes["quantity_available"] < t.quantity_sold:
        raise ValidationError(
            "quantity_available cannot be lower than quantity_sold",
            details=[{"field": "quantity_available", "message": f"must be at least {t.quantity_sold}"}],
        )
    for k, v in changes.items():
        setattr(t, k, v)
    db.commit()
    db.refresh(t)
    return t


def delete_ticket_type(db: Session, user: User, ticket_type_id: str) -> None:
    t = db.get(TicketType, ticket_type_id)
    if not t:
        raise NotFoundError("Ticket type not found")
    _check_owner(db, user, t.event_id)
    if t.quantity_sold > 0 or db.query(BookingItem.id).filter(BookingItem.ticket_type_id == t.id).first():
        raise ConflictError("Cannot delete a ticket type that has bookings")
    db.delete(t)
    db.commit()


def reserve_sold(db: Session, ticket_type_id: str, quantity: int) -> bool:
    """Atomically add ``quantity`` to quantity_sold unless that would oversell.

    Returns False when the conditional update matched no row. Does not commit.
    """
    res = db.execute(
        update(TicketType)
        .where(
            TicketType.id == ticket_type_id,
            TicketType.quantity_sold + quantity <= TicketType.quantity_available,
        )
        .values(quantity_sold=TicketType.quantity_sold + quantity)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1
