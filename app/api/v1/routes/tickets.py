from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.ticket import TicketTypeCreate, TicketTypeUpdate
from app.services import ticket_service

router = APIRouter(tags=["ticket-types"])


@router.get("/events/{event_id}/ticket-types")
def list_ticket_types(event_id: str, db: Session = Depends(get_db)):
    return {"ticket_types": ticket_service.list_for_event(db, event_id)}


@router.post("/ticket-types", status_code=201)
def create_ticket_type(body: TicketTypeCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ticket_service.serialize_ticket_type(ticket_service.create_ticket_type(db, user, body))


@router.patch("/ticket-types/{ticket_type_id}")
def update_ticket_type(ticket_type_id: str, body: TicketTypeUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ticket_service.serialize_ticket_type(ticket_service.update_ticket_type(db, user, ticket_type_id, body))


@router.delete("/ticket-types/{ticket_type_id}", status_code=204)
def delete_ticket_type(ticket_type_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ticket_service.delete_ticket_type(db, user, ticket_type_id)
    return Response(status_code=204)
