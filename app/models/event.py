from sqlalchemy import String, Integer, DateTime, Text, Boolean, Float, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base
from app.models.category import Category
from app.models.organizer import Organizer

EVENT_STATUSES = ("draft", "published", "cancelled")

class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organizer_id: Mapped[str] = mapped_column(String(36), ForeignKey("organizers.id"), index=True)
    category_id: Mapped[str] = mapped_column(String(36), ForeignKey("event_categories.id"), index=True)

    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, default="")

    # ISO strings; date filters compare them lexicographically
    start_date: Mapped[str] = mapped_column(String(10), index=True)  # YYYY-MM-DD
    start_time: Mapped[str] = mapped_column(String(8))               # HH:MM
    end_date: Mapped[str] = mapped_column(String(10))
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)

    location_name: Mapped[str] = mapped_column(String(255), default="")
    location_address: Mapped[str] = mapped_column(Text, default="")
    # Postgres derives a geography(Point, 4326) column from these (see migration)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)  # draft, published, cancelled
    featured: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    organizer: Mapped[Organizer] = relationship(lazy="joined")
    category: Mapped[Category] = relationship(lazy="joined")
    images: Mapped[list["EventImage"]] = relationship(back_populates="event", order_by="EventImage.display_order", cascade="all, delete-orphan")
    ticket_types: Mapped[list["TicketType"]] = relationship(back_populates="event", cascade="all, delete-orphan")  # noqa: F821

    @property
    def location(self) -> dict | None:
        if self.latitude is None or self.longitude is None:
            return None
        return {"lat": self.latitude, "lng": self.longitude}


class EventImage(Base):
    __tablename__ = "event_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), index=True)
    image_url: Mapped[str] = mapped_column(Text)
    alt_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    event: Mapped[Event] = relationship(back_populates="images")
