# Import every model so Base.metadata and relationship() string targets are complete.
from app.db.session import Base  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.category import Category  # noqa: F401
from app.models.organizer import Organizer  # noqa: F401
from app.models.event import Event, EventImage  # noqa: F401
from app.models.ticket_type import TicketType  # noqa: F401
from app.models.attendee import Attendee  # noqa: F401
from app.models.booking import Booking, BookingItem  # noqa: F401
from app.models.webhook_event import ProcessedWebhookEvent  # noqa: F401
from app.models.email_log import EmailLog  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
