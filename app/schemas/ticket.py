from decimal import Decimal
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

class TicketTypeCreate(BaseModel):
    event_id: str
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    quantity_available: int = Field(ge=0)
    max_per_order: Optional[int] = Field(default=None, gt=0)
    sale_start_date: Optional[datetime] = None
    sale_end_date: Optional[datetime] = None

class TicketTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    quantity_available: Optional[int] = Field(default=None, ge=0)
    max_per_order: Optional[int] = Field(default=None, gt=0)
    sale_start_date: Optional[datetime] = None
    sale_end_date: Optional[datetime] = None
