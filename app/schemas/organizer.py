from pydantic import BaseModel, Field
from typing import Optional

class OrganizerProfileIn(BaseModel):
    business_name: str = Field(min_length=1, max_length=200)
    contact_email: str = Field(min_length=3)
    contact_phone: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    logo_url: Optional[str] = None

class OrganizerProfileUpdate(BaseModel):
    business_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    contact_email: Optional[str] = Field(default=None, min_length=3)
    contact_phone: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    logo_url: Optional[str] = None
