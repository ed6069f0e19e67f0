from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.organizer import OrganizerProfileIn, OrganizerProfileUpdate
from app.services import organizer_service

router = APIRouter(tags=["organizers"])


@router.get("/organizers")
def list_organizers(limit: int = Query(50, ge=1, le=200), offset: int = Query(0, ge=0), db: Session = Depends(get_db)):
    return organizer_service.list_organizers(db, limit=limit, offset=offset)


@router.get("/organizers/me")
def my_profile(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return organizer_service.serialize_organizer(organizer_service.get_profile(db, user), private=True)


@router.post("/organizers/me", status_code=201)
def create_profile(body: OrganizerProfileIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return organizer_service.serialize_organizer(organizer_service.create_profile(db, user, body), private=True)


@router.patch("/organizers/me")
def update_profile(body: OrganizerProfileUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return organizer_service.serialize_organizer(organizer_service.update_profile(db, user, body), private=True)


@router.get("/organizers/{organizer_id}")
def get_organizer(organizer_id: str, db: Session = Depends(get_db)):
    return organizer_service.get_organizer(db, organizer_id)
