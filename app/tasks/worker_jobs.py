import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from app.db.session import SessionLocal
from app.core.errors import NotFoundError
from app.services.email_service import confirmation_request_for_booking, process_pending_emails, send_confirmation

logger = logging.getLogger(__name__)


def send_booking_confirmation(booking_id: str, db: Session | None = None) -> dict:
    """Email the booking's customer. A failed send stays in the outbox for process_email_queue."""
    own = db is None
    db = db or SessionLocal()
    try:
        try:
            req = confirmation_request_for_booking(db, booking_id)
        except NotFoundError:
            logger.warning("Confirmation requested for unknown booking %s", booking_id)
            return {"success": False, "message": "Booking not found"}
        return send_confirmation(db, req)
    finally:
        if own:
            db.close()


def process_email_queue(limit: int = 50) -> dict:
    """Process queued/failed emails (retry send). Run periodically via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            return process_pending_emails(db, limit=limit)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()
