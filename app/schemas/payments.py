from pydantic import BaseModel, Field
from typing import Optional


class CheckoutCreateRequest(BaseModel):
    booking_id: str = Field(min_length=1)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutCreated(BaseModel):
    checkout_url: str
    session_id: str
