from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.payments import CheckoutCreateRequest, CheckoutCreated
from app.services import payment_service

router = APIRouter(tags=["payments"])


@router.post("/stripe/checkout/create", response_model=CheckoutCreated)
def create_checkout(body: CheckoutCreateRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return payment_service.create_checkout_session(db, user, body)


@router.post("/stripe/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    # Signature is computed over the exact bytes Stripe sent.
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    # DB and Stripe calls block; keep them off the event loop
    return await run_in_threadpool(payment_service.handle_webhook, db, payload, signature)


@router.get("/stripe/health")
def payments_health():
    return payment_service.payment_health()
