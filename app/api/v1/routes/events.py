from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.event import EventCreate, EventUpdate, EventStatusUpdate
from app.services import event_service
from app.services.nearby_service import SqlNearbyStore, parse_nearby_query, search_nearby_events

router = APIRouter(tags=["events"])


# Must stay above /events/{identifier} so "nearby" is not taken for a slug.
@router.get("/events/nearby")
def nearby_events(request: Request, db: Session = Depends(get_db)):
    query = parse_nearby_query(request.query_params)
    return search_nearby_events(query, SqlNearbyStore(db))


@router.get("/events")
def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    search: Optional[str] = None,
    location: Optional[str] = None,
    featured: Optional[bool] = None,
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    db: Session = Depends(get_db),
):
    return event_service.list_events(
        db, page=page, limit=limit, category=category, search=search, location=location,
        featured=featured, date_from=date_from, date_to=date_to,
    )


@router.get("/events/featured")
def featured_events(limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    return {"events": event_service.featured_events(db, limit=limit)}


@router.get("/events/mine")
def my_events(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"events": event_service.my_events(db, user)}


@router.get("/events/{identifier}")
def get_event(identifier: str, db: Session = Depends(get_db)):
    return event_service.serialize_event(event_service.get_event(db, identifier))


@router.post("/events", status_code=201)
def create_event(body: EventCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return event_service.serialize_event(event_service.create_event(db, user, body))


@router.patch("/events/{event_id}")
def update_event(event_id: str, body: EventUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return event_service.serialize_event(event_service.update_event(db, user, event_id, body))


@router.patch("/events/{event_id}/status")
def change_event_status(event_id: str, body: EventStatusUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    e = event_service.change_event_status(db, user, event_id, body.status)
    return {"id": e.id, "status": e.status}


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    return {"categories": event_service.list_categories(db)}
