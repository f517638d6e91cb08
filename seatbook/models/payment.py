from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from seatbook.db.base import Base
from seatbook.models._mixins import TimestampMixin


class Payment(Base, TimestampMixin):
    """Parameters of a checkout requested from the payment processor."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reservation_id: Mapped[str] = mapped_column(String(36), ForeignKey("reservations.id"), nullable=False, index=True)
    booking_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    venue_id: Mapped[str] = mapped_column(String(36), ForeignKey("venues.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="usd")
    application_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processing_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    payment_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    processor_payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")  # PENDING/PAID/FAILED
