from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seatbook.db.base import Base
from seatbook.db.types import UTCDateTime
from seatbook.models._mixins import TimestampMixin

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("seat_count >= 1", name="ck_reservations_seat_count_positive"),
        CheckConstraint("end_at > start_at", name="ck_reservations_time_order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # All rows written for one request share a booking_id (one row per seat)
    booking_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)
    table_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("venue_tables.id"), nullable=True, index=True)
    seat_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("seats.id"), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)

    seat_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)  # pending/active/cancelled
    # Only set for pending rows; an expired pending row no longer holds its slot
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancel_reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    venue: Mapped["Venue"] = relationship("Venue")  # noqa: F821
    table: Mapped["VenueTable"] = relationship("VenueTable")  # noqa: F821
    seat: Mapped["Seat"] = relationship("Seat")  # noqa: F821
