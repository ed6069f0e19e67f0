from decimal import Decimal
from pydantic import AliasChoices, BaseModel, Field
from typing import List, Optional

class TicketSelection(BaseModel):
    ticket_type_id: str = Field(validation_alias=AliasChoices("ticket_type_id", "type"))
    quantity: int = Field(gt=0)
    # Accepted for compatibility with older clients; the stored ticket price is what gets charged.
    price: Optional[Decimal] = Field(default=None, ge=0)

class AttendeeIn(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)  # plain str to allow .local and other dev domains
    phone: Optional[str] = ""

class BookingCreate(BaseModel):
    event_id: str = Field(validation_alias=AliasChoices("event_id", "eventId"))
    tickets: List[TicketSelection] = Field(default_factory=list, validation_alias=AliasChoices("tickets", "items"))
    attendees: List[AttendeeIn] = Field(default_factory=list)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    special_requests: Optional[str] = Field(default=None, validation_alias=AliasChoices("special_requests", "specialRequests"))

class BookingCreated(BaseModel):
    id: str
    total_price: Decimal
    status: str

class BookingStatusUpdate(BaseModel):
    status: str
