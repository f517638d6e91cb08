# Import all models so that SQLAlchemy registers them for metadata.create_all
from seatbook.models.venue import Venue, VenueHour
from seatbook.models.seating import Seat, VenueTable
from seatbook.models.reservation import Reservation
from seatbook.models.payment import Payment
from seatbook.models.notification import NotificationEvent
from seatbook.models.audit_log import AuditLog

__all__ = [
    "Venue",
    "VenueHour",
    "VenueTable",
    "Seat",
    "Reservation",
    "Payment",
    "NotificationEvent",
    "AuditLog",
]
