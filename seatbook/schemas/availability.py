from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class OpenStatusOut(BaseModel):
    venue_id: str
    timezone: str
    is_open: bool
    status: str  # OPEN_NOW/OPENS_LATER/CLOSED_NOW/CLOSED_TODAY
    today_label: str
    today_hours_text: str
    next_open_at: datetime | None = None
    diagnostic_message: str | None = None
    can_book: bool
    booking_disabled_reason: str = ""
    pause_message: str = ""


class WeeklyHoursOut(BaseModel):
    venue_id: str
    timezone: str
    lines: list[str]


class VenueLabelsOut(BaseModel):
    labels: dict[str, str]
