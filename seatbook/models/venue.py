from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seatbook.db.base import Base
from seatbook.db.types import UTCDateTime
from seatbook.models._mixins import TimestampMixin


class Venue(Base, TimestampMixin):
    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # IANA zone name; empty/unknown falls back to settings.default_timezone
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    onboarding_status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT")  # DRAFT/SUBMITTED/APPROVED/REJECTED
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="ACTIVE")  # ACTIVE/PAUSED/DELETED
    pause_message: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Which venue_hours rows are effective: manual or google
    hours_source: Mapped[str] = mapped_column(String(16), nullable=False, default="google")

    payment_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    hours: Mapped[list["VenueHour"]] = relationship(
        "VenueHour", back_populates="venue", cascade="all, delete-orphan", order_by="VenueHour.day_of_week"
    )
    tables: Mapped[list["VenueTable"]] = relationship(  # noqa: F821
        "VenueTable", back_populates="venue", cascade="all, delete-orphan"
    )


class VenueHour(Base):
    __tablename__ = "venue_hours"
    __table_args__ = (UniqueConstraint("venue_id", "day_of_week", "source", name="uq_venue_hours_day_source"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    open_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # "HH:MM"
    close_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # "HH:MM", "24:00" allowed

    source: Mapped[str] = mapped_column(String(16), nullable=False, default="google")  # manual/google

    venue: Mapped[Venue] = relationship("Venue", back_populates="hours")
