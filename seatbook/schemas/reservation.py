from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from seatbook.schemas.pricing import PriceQuoteOut


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    venue_id: str
    table_id: str | None
    seat_id: str | None
    user_id: str
    start_at: datetime
    end_at: datetime
    seat_count: int
    status: str
    expires_at: datetime | None = None
    cancelled_at: datetime | None = None


class BookingOut(BaseModel):
    booking_id: str
    status: str
    reservations: list[ReservationOut]
    pricing: PriceQuoteOut | None = None


class BookingCancelRequest(BaseModel):
    reason: str = Field(default="", max_length=255)
