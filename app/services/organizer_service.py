import uuid
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.event import Event
from app.models.organizer import Organizer
from app.models.user import User
from app.schemas.organizer import OrganizerProfileIn, OrganizerProfileUpdate
from app.services.event_service import serialize_event


def serialize_organizer(o: Organizer, private: bool = False) -> dict:
    out = {
        "id": o.id,
        "business_name": o.business_name,
        "contact_email": o.contact_email,
        "description": o.description,
        "website": o.website,
        "location": o.location,
        "logo_url": o.logo_url,
        "verification_status": o.verification_status,
        "created_at": o.created_at.isoformat() if o.created_at else None,
    }
    if private:
        out["user_id"] = o.user_id
        out["contact_phone"] = o.contact_phone
        out["stripe_account_id"] = o.stripe_account_id
    return out


def list_organizers(db: Session, limit: int = 50, offset: int = 0) -> dict:
    q = db.query(Organizer)
    total = q.count()
    items = q.order_by(Organizer.business_name.asc()).limit(max(1, min(limit, 200))).offset(max(offset, 0)).all()
    return {"total": total, "organizers": [serialize_organizer(o) for o in items]}


def get_organizer(db: Session, organizer_id: str) -> dict:
    o = db.get(Organizer, organizer_id)
    if not o:
        raise NotFoundError("Organizer not found")
    events = (
        db.query(Event)
        .filter(Event.organizer_id == o.id, Event.status == "published")
        .order_by(Event.start_date.asc())
        .all()
    )
    out = serialize_organizer(o)
    out["events"] = [serialize_event(e) for e in events]
    return out


def get_profile(db: Session, user: User) -> Organizer:
    o = db.query(Organizer).filter(Organizer.user_id == user.id).first()
    if not o:
        raise NotFoundError("Organizer profile not found")
    return o


def create_profile(db: Session, user: User, body: OrganizerProfileIn) -> Organizer:
    if db.query(Organizer).filter(Organizer.user_id == user.id).first():
        raise ConflictError("Organizer profile already exists")
    o = Organizer(id=str(uuid.uuid4()), user_id=user.id, verification_status="pending", **body.model_dump())
    db.add(o)
    db.commit()
    db.refresh(o)
    return o


def update_profile(db: Session, user: User, body: OrganizerProfileUpdate) -> Organizer:
    o = get_profile(db, user)
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(o, k, v)
    db.commit()
    db.refresh(o)
    return o
