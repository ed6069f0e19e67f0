from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Text, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base
from app.models.attendee import Attendee
from app.models.event import Event
from app.models.ticket_type import TicketType

BOOKING_STATUSES = ("pending", "confirmed", "cancelled")

class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), index=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending, confirmed, cancelled
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    customer_name: Mapped[str] = mapped_column(String(200))
    customer_email: Mapped[str] = mapped_column(String(320))
    customer_phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    # minted once per booking attempt and sent to Stripe so retried checkout calls are safe
    idempotency_key: Mapped[str] = mapped_column(String(36), unique=True)
    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    items: Mapped[list["BookingItem"]] = relationship(back_populates="booking", cascade="all, delete-orphan")
    attendees: Mapped[list[Attendee]] = relationship(cascade="all, delete-orphan", order_by=Attendee.created_at)
    event: Mapped[Event] = relationship()


class BookingItem(Base):
    __tablename__ = "booking_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(String(36), ForeignKey("bookings.id"), index=True)
    ticket_type_id: Mapped[str] = mapped_column(String(36), ForeignKey("ticket_types.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # unit_price * quantity
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    booking: Mapped[Booking] = relationship(back_populates="items")
    ticket_type: Mapped[TicketType] = relationship()
