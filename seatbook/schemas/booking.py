from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator


class _BookingRequestBase(BaseModel):
    venue_id: str = Field(min_length=1, max_length=36)
    start_at: datetime
    end_at: datetime

    @field_validator("start_at", "end_at")
    @classmethod
    def _require_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("datetime must include a timezone offset")
        return v


class IndividualBookingRequest(_BookingRequestBase):
    mode: Literal["individual"] = "individual"
    seat_ids: list[str] = Field(min_length=1, max_length=50)

    @field_validator("seat_ids")
    @classmethod
    def _unique_seats(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("seat_ids must be unique")
        if any(not s for s in v):
            raise ValueError("seat_ids must not be empty")
        return v


class GroupBookingRequest(_BookingRequestBase):
    mode: Literal["group"] = "group"
    table_id: str = Field(min_length=1, max_length=36)
    seat_count: int = Field(ge=1, le=1000)


BookingRequest = Annotated[Union[IndividualBookingRequest, GroupBookingRequest], Field(discriminator="mode")]
