from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from zoneinfo import ZoneInfo

from seatbook.core.clock import Clock
from seatbook.core.config import get_settings
from seatbook.models import VenueTable
from seatbook.services.hours_service import OpenStatus, batch_resolve, get_open_status
from seatbook.services.timezone_utils import (
    civil_parts_in_zone,
    format_instant_as_clock,
    resolve_timezone,
    round_up_to_next_quarter_hour,
)
from seatbook.stores.interfaces import BookingStore

logger = logging.getLogger(__name__)

SOLD_OUT = "Sold out for now"
AVAILABLE_NOW = "Available now"
CURRENTLY_CLOSED = "Currently Closed"

_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True)
class BookedInterval:
    start_at: datetime
    end_at: datetime
    seat_count: int


def compute_venue_capacity(tables: Iterable[VenueTable]) -> int:
    """Bookable seats across active tables.

    Active seat rows are counted; a table without seat rows falls back to its
    declared seat count.
    """
    total = 0
    for table in tables:
        if not table.is_active:
            continue
        if table.seats:
            total += sum(1 for s in table.seats if s.is_active)
        else:
            total += table.seat_count or 0
    return total


def _closed_label(open_status: OpenStatus, now: datetime, zone: ZoneInfo) -> str:
    next_open = open_status.next_open_at
    if next_open is None:
        return CURRENTLY_CLOSED
    today = civil_parts_in_zone(now, zone).date
    next_parts = civil_parts_in_zone(next_open, zone)
    clock_label = format_instant_as_clock(next_open, zone)
    if next_parts.date == today:
        return f"Opens at {clock_label}"
    if next_parts.date == today + timedelta(days=1):
        return f"Opens tomorrow at {clock_label}"
    return f"Opens {_DAY_NAMES[next_parts.weekday]} at {clock_label}"


def compute_availability_label(
    capacity: int,
    reservations: Sequence[BookedInterval],
    open_status: OpenStatus | None,
    *,
    now: datetime,
    timezone: str | ZoneInfo | None = None,
    required_seats: int = 1,
) -> str:
    """Short listing label: "Available now", "Next available at 7:15 PM", ...

    Scans forward from the next quarter hour in fixed steps, counting seats
    held by reservations that overlap a lookahead window at each step.
    """
    if capacity <= 0:
        return SOLD_OUT
    zone = timezone if isinstance(timezone, ZoneInfo) else resolve_timezone(timezone)

    if open_status is None:
        return CURRENTLY_CLOSED
    if not open_status.is_open:
        return _closed_label(open_status, now, zone)

    settings = get_settings()
    step = timedelta(minutes=settings.availability_step_minutes)
    window = timedelta(minutes=settings.availability_window_minutes)
    horizon = timedelta(hours=settings.availability_horizon_hours)

    base = round_up_to_next_quarter_hour(now)
    offset = timedelta(0)
    while offset < horizon:
        window_start = base + offset
        window_end = window_start + window
        booked = sum(r.seat_count for r in reservations if r.start_at < window_end and r.end_at > window_start)
        if capacity - booked >= required_seats:
            if offset == timedelta(0):
                return AVAILABLE_NOW
            return f"Next available at {format_instant_as_clock(window_start, zone)}"
        offset += step
    return SOLD_OUT


def venue_availability_labels(store: BookingStore, venue_ids: Sequence[str], clock: Clock) -> dict[str, str]:
    """Availability label per venue id, for listings. Unknown ids are skipped."""
    if not venue_ids:
        return {}
    settings = get_settings()
    now = clock.now()
    hours = batch_resolve(store, venue_ids, clock)

    scan_end = round_up_to_next_quarter_hour(now) + timedelta(
        hours=settings.availability_horizon_hours, minutes=settings.availability_window_minutes
    )
    booked: dict[str, list[BookedInterval]] = {vid: [] for vid in hours}
    for r in store.find_live_reservations_for_venues(list(hours), now, scan_end, now):
        booked.setdefault(r.venue_id, []).append(BookedInterval(r.start_at, r.end_at, r.seat_count))

    tables_by_venue: dict[str, list[VenueTable]] = {vid: [] for vid in hours}
    for table in store.find_tables_for_venues(list(hours)):
        tables_by_venue.setdefault(table.venue_id, []).append(table)

    labels: dict[str, str] = {}
    for venue_id, canonical in hours.items():
        open_status = get_open_status(canonical, now) if canonical.weekly_hours else None
        labels[venue_id] = compute_availability_label(
            compute_venue_capacity(tables_by_venue[venue_id]),
            booked[venue_id],
            open_status,
            now=now,
            timezone=canonical.timezone,
        )
    return labels
