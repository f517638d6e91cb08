from __future__ import annotations

import uuid

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from seatbook.db.base import Base
from seatbook.models._mixins import TimestampMixin


class NotificationEvent(Base, TimestampMixin):
    """Outbound notification request; delivery happens elsewhere."""

    __tablename__ = "notification_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    # e.g. booking_confirmation:<reservation id>
    dedupe_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    to_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    venue_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    booking_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")  # PENDING/SENT/FAILED
