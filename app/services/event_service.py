import re
import uuid
import math
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_

from app.core.errors import NotFoundError, PermissionDeniedError, ValidationError, ConflictError
from app.models.category import Category
from app.models.event import Event, EventImage, EVENT_STATUSES
from app.models.organizer import Organizer
from app.models.user import User
from app.schemas.event import EventCreate, EventUpdate
from app.services.audit_service import log_audit

# Only forward moves are legal; nothing leaves cancelled.
ALLOWED_TRANSITIONS = {
    "draft": {"published"},
    "published": {"cancelled"},
    "cancelled": set(),
}


def slugify(value: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")
    return s or "event"


def _unique_slug(db: Session, title: str) -> str:
    base = slugify(title)
    slug = base
    for _ in range(10):
        if not db.query(Event.id).filter(Event.slug == slug).first():
            return slug
        slug = f"{base}-{uuid.uuid4().hex[:6]}"
    raise ConflictError("could not allocate event slug")


def serialize_event(e: Event) -> dict:
    org = e.organizer
    cat = e.category
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "slug": e.slug,
        "start_date": e.start_date,
        "start_time": e.start_time,
        "end_date": e.end_date,
        "end_time": e.end_time,
        "location_name": e.location_name,
        "location_address": e.location_address,
        "location": e.location,
        "category_id": e.category_id,
        "organizer_id": e.organizer_id,
        "status": e.status,
        "featured": bool(e.featured),
        "capacity": e.capacity,
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "updated_at": e.updated_at.isoformat() if e.updated_at else None,
        "organizers": {
            "id": org.id,
            "business_name": org.business_name,
            "contact_email": org.contact_email,
            "description": org.description,
            "website": org.website,
        } if org else None,
        "event_categories": {"name": cat.name, "slug": cat.slug} if cat else None,
        "event_images": [
            {"image_url": i.image_url, "alt_text": i.alt_text, "display_order": i.display_order, "is_primary": i.is_primary}
            for i in e.images
        ],
        "ticket_types": [
            {"id": t.id, "name": t.name, "price": t.price, "quantity_available": t.quantity_available, "quantity_sold": t.quantity_sold}
            for t in e.ticket_types
        ],
    }


def list_categories(db: Session) -> list[dict]:
    cats = db.query(Category).order_by(Category.name.asc()).all()
    return [
        {"id": c.id, "name": c.name, "slug": c.slug, "description": c.description, "icon": c.icon, "color": c.color}
        for c in cats
    ]


def list_events(db: Session, page: int = 1, limit: int = 10, category: str | None = None, search: str | None = None,
                location: str | None = None, featured: bool | None = None,
                date_from: str | None = None, date_to: str | None = None) -> dict:
    """Published events ordered by start date, with an exact total for pagination."""
    page = max(page, 1)
    limit = max(1, min(limit, 100))
    q = (
        db.query(Event)
        .options(selectinload(Event.images), selectinload(Event.ticket_types))
        .filter(Event.status == "published")
    )
    if category:
        q = q.join(Category, Category.id == Event.category_id).filter(Category.slug == category)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(Event.title).like(like),
            func.lower(Event.description).like(like),
            func.lower(Event.location_name).like(like),
        ))
    if location:
        q = q.filter(func.lower(Event.location_name).like(f"%{location.lower()}%"))
    if featured is not None:
        q = q.filter(Event.featured == featured)
    if date_from:
        q = q.filter(Event.start_date >= date_from)
    if date_to:
        q = q.filter(Event.start_date <= date_to)

    total = q.count()
    events = q.order_by(Event.start_date.asc(), Event.start_time.asc()).limit(limit).offset((page - 1) * limit).all()
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "events": [serialize_event(e) for e in events],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPreviousPage": page > 1,
        },
    }


def featured_events(db: Session, limit: int = 6) -> list[dict]:
    events = (
        db.query(Event)
        .filter(Event.status == "published", Event.featured == True)  # noqa: E712
        .order_by(Event.start_date.asc())
        .limit(max(1, min(limit, 50)))
        .all()
    )
    return [serialize_event(e) for e in events]


def get_event(db: Session, identifier: str) -> Event:
    """Look up by id first, then by slug."""
    e = db.get(Event, identifier)
    if not e:
        e = db.query(Event).filter(Event.slug == identifier).first()
    if not e:
        raise NotFoundError("Event not found")
    return e


def get_organizer_for_user(db: Session, user: User) -> Organizer:
    org = db.query(Organizer).filter(Organizer.user_id == user.id).first()
    if not org:
        raise PermissionDeniedError("Organizer profile required")
    return org


def _owned_event(db: Session, event_id: str, user: User) -> Event:
    e = db.get(Event, event_id)
    if not e:
        raise NotFoundError("Event not found")
    org = get_organizer_for_user(db, user)
    if e.organizer_id != org.id:
        raise PermissionDeniedError("You do not own this event")
    return e


def _check_dates(start_date: str, end_date: str) -> None:
    if end_date < start_date:
        raise ValidationError("Invalid event dates", details=[{"field": "end_date", "message": "end_date must not be before start_date"}])


def create_event(db: Session, user: User, body: EventCreate) -> Event:
    org = get_organizer_for_user(db, user)
    if not db.get(Category, body.category_id):
        raise ValidationError("Invalid category", details=[{"field": "category_id", "message": "Category not found"}])
    if body.status not in ("draft", "published"):
        raise ValidationError("New events must be draft or published")
    _check_dates(body.start_date, body.end_date)

    e = Event(
        id=str(uuid.uuid4()),
        organizer_id=org.id,
        category_id=body.category_id,
        title=body.title.strip(),
        slug=_unique_slug(db, body.title),
        description=body.description,
        start_date=body.start_date,
        start_time=body.start_time,
        end_date=body.end_date,
        end_time=body.end_time,
        location_name=body.location_name,
        location_address=body.location_address,
        latitude=body.latitude,
        longitude=body.longitude,
        capacity=body.capacity,
        featured=body.featured,
        status=body.status,
    )
    db.add(e)
    for img in body.images:
        db.add(EventImage(id=str(uuid.uuid4()), event_id=e.id, **img.model_dump()))
    log_audit(db, actor_user_id=user.id, action="event.created", entity_type="event", entity_id=e.id, details={"status": e.status})
    db.commit()
    db.refresh(e)
    return e


def update_event(db: Session, user: User, event_id: str, body: EventUpdate) -> Event:
    e = _owned_event(db, event_id, user)
    changes = body.model_dump(exclude_unset=True)
    if "category_id" in changes and not db.get(Category, changes["category_id"]):
        raise ValidationError("Invalid category", details=[{"field": "category_id", "message": "Category not found"}])
    for k, v in changes.items():
        setattr(e, k, v)
    _check_dates(e.start_date, e.end_date)
    db.commit()
    db.refresh(e)
    return e


def change_event_status(db: Session, user: User, event_id: str, status: str) -> Event:
    if status not in EVENT_STATUSES:
        raise ValidationError("Invalid status. Must be draft, published, or cancelled")
    e = _owned_event(db, event_id, user)
    if status == e.status:
        return e
    if status not in ALLOWED_TRANSITIONS[e.status]:
        raise ConflictError(f"Cannot change event status from {e.status} to {status}")
    old = e.status
    e.status = status
    log_audit(db, actor_user_id=user.id, action="event.status_changed", entity_type="event", entity_id=e.id, details={"from": old, "to": status})
    db.commit()
    db.refresh(e)
    return e


def my_events(db: Session, user: User) -> list[dict]:
    org = get_organizer_for_user(db, user)
    events = db.query(Event).filter(Event.organizer_id == org.id).order_by(Event.created_at.desc()).all()
    return [serialize_event(e) for e in events]
