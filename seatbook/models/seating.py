from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seatbook.db.base import Base
from seatbook.models._mixins import TimestampMixin


class VenueTable(Base, TimestampMixin):
    __tablename__ = "venue_tables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # individual: seats are booked one by one; group: the whole table is one unit
    booking_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="individual")
    table_price_per_hour_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    seat_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    directions_text: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    venue: Mapped["Venue"] = relationship("Venue", back_populates="tables")  # noqa: F821
    seats: Mapped[list["Seat"]] = relationship(
        "Seat", back_populates="table", cascade="all, delete-orphan", order_by="Seat.position"
    )


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    table_id: Mapped[str] = mapped_column(String(36), ForeignKey("venue_tables.id"), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    price_per_hour_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    table: Mapped[VenueTable] = relationship("VenueTable", back_populates="seats")
