from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from seatbook.models import Reservation, Seat, Venue, VenueTable


@dataclass(frozen=True)
class ResourceSelector:
    """Which reservations compete for the same inventory.

    Individual bookings compete per seat; group bookings compete for the table
    as a whole (rows with a table id and no seat id).
    """

    seat_ids: tuple[str, ...] = ()
    table_id: str | None = None

    @classmethod
    def for_seats(cls, seat_ids: Sequence[str]) -> "ResourceSelector":
        return cls(seat_ids=tuple(sorted(set(seat_ids))))

    @classmethod
    def for_table(cls, table_id: str) -> "ResourceSelector":
        return cls(table_id=table_id)

    @property
    def is_group(self) -> bool:
        return self.table_id is not None and not self.seat_ids

    @property
    def conflict_message(self) -> str:
        if self.is_group:
            return "This table is not available for that time."
        return "One or more seats are not available for that time."


class BookingStore(ABC):
    """Interface for booking persistence operations."""

    @abstractmethod
    def find_venue_by_id(self, venue_id: str) -> Venue | None:
        ...

    @abstractmethod
    def find_venues_by_ids(self, venue_ids: Sequence[str]) -> list[Venue]:
        """Return venues (with weekly hours) for the given ids; unknown ids are skipped."""
        ...

    @abstractmethod
    def find_table_by_id(self, table_id: str) -> VenueTable | None:
        ...

    @abstractmethod
    def find_seat_by_id(self, seat_id: str) -> Seat | None:
        ...

    @abstractmethod
    def find_seats_by_ids(self, seat_ids: Sequence[str]) -> list[Seat]:
        """Return seats (with their table) for the given ids; unknown ids are skipped."""
        ...

    @abstractmethod
    def find_tables_for_venues(self, venue_ids: Sequence[str]) -> list[VenueTable]:
        ...

    @abstractmethod
    def find_overlapping_reservations(
        self, selector: ResourceSelector, start_at: datetime, end_at: datetime, now: datetime
    ) -> list[Reservation]:
        """Live reservations on the selected resources intersecting [start_at, end_at)."""
        ...

    @abstractmethod
    def create_reservations(
        self,
        selector: ResourceSelector,
        records: Sequence[dict[str, Any]],
        now: datetime,
    ) -> list[Reservation]:
        """Atomically re-check overlap and insert ``records``.

        All records share one interval (``start_at``/``end_at``).

        Raises:
            ConflictError: another live reservation holds the interval, either
                found by the re-check or rejected by a store constraint.
        """
        ...

    @abstractmethod
    def activate_reservations(
        self, selector: ResourceSelector, reservations: Sequence[Reservation], now: datetime
    ) -> None:
        """Atomically re-check overlap against other bookings and mark ``reservations`` active.

        Raises:
            ConflictError: the booking was cancelled meanwhile, or another
                live booking now holds the interval.
        """
        ...

    @abstractmethod
    def find_live_reservations_for_venues(
        self, venue_ids: Sequence[str], start_at: datetime, end_at: datetime, now: datetime
    ) -> list[Reservation]:
        ...

    @abstractmethod
    def count_user_reservations_between(
        self, user_id: str, start_at: datetime, end_at: datetime, now: datetime, venue_id: str | None = None
    ) -> int:
        """Number of distinct live bookings a user starts inside [start_at, end_at)."""
        ...

    @abstractmethod
    def find_reservations_by_booking(self, booking_id: str) -> list[Reservation]:
        ...

    @abstractmethod
    def find_expired_pending(self, now: datetime) -> list[Reservation]:
        ...

    @abstractmethod
    def update_reservations_status(
        self, reservations: Sequence[Reservation], status: str, *, now: datetime, reason: str = ""
    ) -> None:
        ...
