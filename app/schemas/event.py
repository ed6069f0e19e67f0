from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class NearbyEventsQuery(BaseModel):
    """Query parameters of the nearby-events search, already range-checked."""

    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius: int = Field(default=50000, gt=0, le=200000)  # meters
    limit: int = Field(default=20, ge=1, le=100)
    page: int = Field(default=1, ge=1)
    category: Optional[str] = None
    search: Optional[str] = None
    date_from: Optional[str] = Field(default=None, alias="dateFrom")  # YYYY-MM-DD, inclusive
    date_to: Optional[str] = Field(default=None, alias="dateTo")

    @field_validator("radius", "limit", "page", mode="before")
    @classmethod
    def truncate_fractions(cls, v):
        """Whole-number params accept decimals and drop the fraction ("2500.5" -> 2500)."""
        if isinstance(v, (str, float)):
            try:
                return int(float(v))
            except (ValueError, OverflowError):
                return v
        return v

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    category_id: str
    start_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    start_time: str = Field(pattern=r"^\d{2}:\d{2}(:\d{2})?$")
    end_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}(:\d{2})?$")
    location_name: str = ""
    location_address: str = ""
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    capacity: Optional[int] = Field(default=None, gt=0)
    featured: bool = False
    status: str = "draft"
    images: List["EventImageIn"] = []


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category_id: Optional[str] = None
    start_date: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    start_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}(:\d{2})?$")
    end_date: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}(:\d{2})?$")
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    capacity: Optional[int] = Field(default=None, gt=0)
    featured: Optional[bool] = None


class EventImageIn(BaseModel):
    image_url: str
    alt_text: Optional[str] = None
    display_order: int = 0
    is_primary: bool = False


class EventStatusUpdate(BaseModel):
    status: str


EventCreate.model_rebuild()
