from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Text, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base
from app.models.event import Event

class TicketType(Base):
    __tablename__ = "ticket_types"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_ticket_types_price"),
        CheckConstraint("quantity_available >= 0", name="ck_ticket_types_available"),
        CheckConstraint("quantity_sold <= quantity_available", name="ck_ticket_types_not_oversold"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity_available: Mapped[int] = mapped_column(Integer)
    quantity_sold: Mapped[int] = mapped_column(Integer, default=0)
    max_per_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sale_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sale_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    event: Mapped[Event] = relationship(back_populates="ticket_types")

    @property
    def remaining(self) -> int:
        return int(self.quantity_available) - int(self.quantity_sold or 0)
