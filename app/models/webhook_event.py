from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class ProcessedWebhookEvent(Base):
    """Stripe event ids whose effects have been applied."""

    __tablename__ = "processed_webhook_events"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)  # Stripe event id (evt_...)
    event_type: Mapped[str] = mapped_column(String(80))
    booking_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
