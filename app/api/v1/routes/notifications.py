from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.email import ConfirmationEmailRequest
from app.services.email_service import send_confirmation

router = APIRouter(tags=["notifications"])


@router.post("/send-confirmation")
def send_confirmation_email(body: ConfirmationEmailRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return send_confirmation(db, body)
