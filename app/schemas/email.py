from decimal import Decimal
from pydantic import AliasChoices, BaseModel, Field
from typing import List, Optional


class EmailTicketLine(BaseModel):
    type: str
    quantity: int
    price: Decimal


class EmailAttendee(BaseModel):
    name: str
    email: str


class ConfirmationEmailRequest(BaseModel):
    booking_id: str = Field(validation_alias=AliasChoices("booking_id", "bookingId"))
    user_email: str = Field(validation_alias=AliasChoices("user_email", "userEmail"))
    event_name: str = Field(validation_alias=AliasChoices("event_name", "eventName"))
    event_date: str = Field(validation_alias=AliasChoices("event_date", "eventDate"))
    total_amount: Decimal = Field(validation_alias=AliasChoices("total_amount", "totalAmount"))
    tickets: Optional[List[EmailTicketLine]] = None
    attendees: Optional[List[EmailAttendee]] = None
