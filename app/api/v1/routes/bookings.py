from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingCreated, BookingStatusUpdate
from app.services import booking_service
from app.services.audit_service import audit_trail

router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=BookingCreated, status_code=201)
def create_booking(body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = booking_service.create_booking(db, user, body)
    return BookingCreated(id=b.id, total_price=b.total_price, status=b.status)


# Older clients post here; same contract as POST /bookings.
@router.post("/process-booking", response_model=BookingCreated, status_code=201)
def process_booking(body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return create_booking(body, db, user)


@router.get("/bookings")
def my_bookings(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"bookings": booking_service.list_my_bookings(db, user)}


@router.get("/bookings/organizer")
def organizer_bookings(status: Optional[str] = None, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"bookings": booking_service.list_organizer_bookings(db, user, status=status)}


@router.get("/bookings/{booking_id}")
def get_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return booking_service.serialize_booking(booking_service.get_booking_for_user(db, user, booking_id))


@router.get("/bookings/{booking_id}/history")
def booking_history(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = booking_service.get_booking_for_user(db, user, booking_id)
    return {"booking_id": b.id, "history": audit_trail(db, "booking", b.id)}


@router.patch("/bookings/{booking_id}/status")
def update_booking_status(booking_id: str, body: BookingStatusUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = booking_service.update_status(db, user, booking_id, body.status)
    return {"id": b.id, "status": b.status}


@router.delete("/bookings/{booking_id}")
def cancel_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = booking_service.cancel_booking(db, user, booking_id)
    return {"id": b.id, "status": b.status}
