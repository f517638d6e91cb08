from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol, Sequence

from seatbook.core.clock import Clock
from seatbook.core.config import get_settings
from seatbook.services.timezone_utils import civil_date_to_instant, civil_parts_in_zone, resolve_timezone

if TYPE_CHECKING:
    from seatbook.models import Venue
    from seatbook.stores.interfaces import BookingStore

logger = logging.getLogger(__name__)

DEFAULT_PAUSE_MESSAGE = "This venue is temporarily not accepting reservations."


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str = ""
    code: str = ""

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, code: str) -> "PolicyDecision":
        return cls(allowed=False, reason=reason, code=code)


class BookingPolicy(Protocol):
    def check_allowed(self, venue: "Venue", user_id: str, start_at: datetime, end_at: datetime) -> PolicyDecision: ...


def venue_status_decision(venue: "Venue") -> PolicyDecision:
    if venue.status == "DELETED" or venue.deleted_at is not None:
        return PolicyDecision.deny("This venue is no longer available for booking.", "VENUE_DELETED")
    if venue.status == "PAUSED":
        return PolicyDecision.deny(venue.pause_message or DEFAULT_PAUSE_MESSAGE, "VENUE_PAUSED")
    return PolicyDecision.allow()


class VenueStatusPolicy:
    """Deleted and paused venues take no bookings."""

    def check_allowed(self, venue: "Venue", user_id: str, start_at: datetime, end_at: datetime) -> PolicyDecision:
        return venue_status_decision(venue)


class DailyBookingCapPolicy:
    """Caps live bookings per user per venue-local day (0 = unlimited)."""

    def __init__(self, store: "BookingStore", clock: Clock, max_per_day: int | None = None) -> None:
        self.store = store
        self.clock = clock
        self.max_per_day = get_settings().max_bookings_per_user_per_day if max_per_day is None else max_per_day

    def check_allowed(self, venue: "Venue", user_id: str, start_at: datetime, end_at: datetime) -> PolicyDecision:
        if self.max_per_day <= 0:
            return PolicyDecision.allow()
        zone = resolve_timezone(venue.timezone)
        day = civil_parts_in_zone(start_at, zone).date
        day_start = civil_date_to_instant(zone, day, 0)
        day_end = civil_date_to_instant(zone, day + timedelta(days=1), 0)
        count = self.store.count_user_reservations_between(
            user_id, day_start, day_end, self.clock.now(), venue_id=venue.id
        )
        if count >= self.max_per_day:
            return PolicyDecision.deny(
                f"You can make at most {self.max_per_day} booking(s) per day at this venue.",
                "DAILY_CAP_REACHED",
            )
        return PolicyDecision.allow()


class CompositePolicy:
    """Runs policies in order; the first denial wins."""

    def __init__(self, policies: Sequence[BookingPolicy]) -> None:
        self.policies = list(policies)

    def check_allowed(self, venue: "Venue", user_id: str, start_at: datetime, end_at: datetime) -> PolicyDecision:
        for policy in self.policies:
            decision = policy.check_allowed(venue, user_id, start_at, end_at)
            if not decision.allowed:
                logger.info(
                    "booking_policy_denied venue_id=%s user_id=%s code=%s", venue.id, user_id, decision.code
                )
                return decision
        return PolicyDecision.allow()


def default_policy(store: "BookingStore", clock: Clock) -> CompositePolicy:
    return CompositePolicy([VenueStatusPolicy(), DailyBookingCapPolicy(store, clock)])


@dataclass(frozen=True)
class VenueBookability:
    can_book: bool
    status: str
    reason: str = ""
    pause_message: str = ""


def get_venue_bookability(venue: "Venue") -> VenueBookability:
    """Same answer as ``VenueStatusPolicy`` and the approval check, without raising."""
    decision = venue_status_decision(venue)
    status = "DELETED" if venue.deleted_at is not None else venue.status
    if not decision.allowed:
        pause_message = decision.reason if decision.code == "VENUE_PAUSED" else ""
        return VenueBookability(can_book=False, status=status, reason=decision.reason, pause_message=pause_message)
    if venue.onboarding_status != "APPROVED":
        return VenueBookability(can_book=False, status=status, reason="This venue is not available for booking.")
    return VenueBookability(can_book=True, status=status)
