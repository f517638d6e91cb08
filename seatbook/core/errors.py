from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    PAST_TIME = "PAST_TIME"
    NOT_FOUND = "NOT_FOUND"
    CROSS_VENUE_MISMATCH = "CROSS_VENUE_MISMATCH"
    INACTIVE_RESOURCE = "INACTIVE_RESOURCE"
    OUTSIDE_OPERATING_HOURS = "OUTSIDE_OPERATING_HOURS"
    POLICY_DENIED = "POLICY_DENIED"
    CONFLICT = "CONFLICT"
    VENUE_NOT_BOOKABLE = "VENUE_NOT_BOOKABLE"


class BookingError(Exception):
    """Base error with code and user-safe message."""

    code: ErrorCode = ErrorCode.INVALID_INPUT
    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code.value, "error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInputError(BookingError):
    code = ErrorCode.INVALID_INPUT
    status_code = 400


class PastTimeError(BookingError):
    code = ErrorCode.PAST_TIME
    status_code = 400

    def __init__(self, message: str = "This date/time is in the past. Please select a current or future time.") -> None:
        super().__init__(message)


class NotFoundError(BookingError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class CrossVenueMismatchError(BookingError):
    code = ErrorCode.CROSS_VENUE_MISMATCH
    status_code = 400


class InactiveResourceError(BookingError):
    code = ErrorCode.INACTIVE_RESOURCE
    status_code = 403


class OutsideOperatingHoursError(BookingError):
    code = ErrorCode.OUTSIDE_OPERATING_HOURS
    status_code = 400


class PolicyDeniedError(BookingError):
    code = ErrorCode.POLICY_DENIED
    status_code = 403


class ConflictError(BookingError):
    code = ErrorCode.CONFLICT
    status_code = 409


class VenueNotBookableError(BookingError):
    code = ErrorCode.VENUE_NOT_BOOKABLE
    status_code = 403

    def __init__(self, message: str = "This venue is not available for booking.") -> None:
        super().__init__(message)
