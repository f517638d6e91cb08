"""Venue hours: source precedence, day bounds in UTC and open status."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Iterable, Sequence
from zoneinfo import ZoneInfo

from seatbook.core.clock import Clock
from seatbook.core.config import get_settings
from seatbook.services.timezone_utils import (
    WEEKDAY_LABELS,
    civil_date_to_instant,
    civil_parts_in_zone,
    effective_close_minutes,
    ensure_aware,
    format_minutes_as_clock,
    parse_clock_string,
    resolve_timezone,
    weekday_of_date,
)

if TYPE_CHECKING:
    from seatbook.models import Venue, VenueHour
    from seatbook.stores.interfaces import BookingStore

logger = logging.getLogger(__name__)

OPEN_NOW = "OPEN_NOW"
OPENS_LATER = "OPENS_LATER"
CLOSED_NOW = "CLOSED_NOW"
CLOSED_TODAY = "CLOSED_TODAY"

NOT_OPEN_MESSAGE = "This venue isn't open at this time. Please check opening hours."

# Day bounds are inclusive; the last representable instant sits 1 ms before close
_END_EPSILON = timedelta(milliseconds=1)
_NEXT_OPEN_SEARCH_DAYS = 7


@dataclass(frozen=True)
class WeeklyHourRule:
    day_of_week: int  # 0=Sunday .. 6=Saturday
    is_closed: bool
    open_time: str | None
    close_time: str | None


@dataclass(frozen=True)
class CanonicalHours:
    timezone: str
    weekly_hours: tuple[WeeklyHourRule, ...] = ()

    @property
    def zone(self) -> ZoneInfo:
        return resolve_timezone(self.timezone)

    def rule_for(self, day_of_week: int) -> WeeklyHourRule | None:
        for rule in self.weekly_hours:
            if rule.day_of_week == day_of_week:
                return rule
        return None


@dataclass(frozen=True)
class DayBounds:
    start: datetime
    end: datetime

    @property
    def close_at(self) -> datetime:
        """Exclusive end of the open window."""
        return self.end + _END_EPSILON

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


@dataclass(frozen=True)
class OpenStatus:
    is_open: bool
    status: str
    today_label: str
    today_hours_text: str
    next_open_at: datetime | None = None
    diagnostic_message: str | None = None


@dataclass(frozen=True)
class HoursCheck:
    is_valid: bool
    error: str | None = None


def effective_hour_rows(rows: Iterable["VenueHour"], hours_source: str | None) -> list["VenueHour"]:
    wanted = "manual" if hours_source == "manual" else "google"
    return [r for r in rows if (r.source or "google") == wanted]


def canonical_from_venue(venue: "Venue") -> CanonicalHours:
    rows = effective_hour_rows(venue.hours, venue.hours_source)
    rules = tuple(
        WeeklyHourRule(
            day_of_week=r.day_of_week,
            is_closed=bool(r.is_closed),
            open_time=r.open_time,
            close_time=r.close_time,
        )
        for r in sorted(rows, key=lambda r: r.day_of_week)
    )
    tz_name = venue.timezone or get_settings().default_timezone
    return CanonicalHours(timezone=resolve_timezone(tz_name).key, weekly_hours=rules)


def _rule_window(rule: WeeklyHourRule | None, label: str) -> tuple[tuple[int, int] | None, str | None]:
    """Return ((open_min, close_min), None) or (None, diagnostic).

    A closed or missing rule has no window and no diagnostic.
    """
    if rule is None or rule.is_closed:
        return None, None
    open_min = parse_clock_string(rule.open_time)
    close_min = effective_close_minutes(rule.close_time)
    if open_min is None or close_min is None:
        return None, f"Invalid or missing open/close for {label}"
    if close_min <= open_min:
        return None, f"Invalid open/close for {label} (close before or equal to open)"
    return (open_min, close_min), None


def get_open_intervals_for_date(canonical: CanonicalHours, civil_day: date) -> list[tuple[int, int]]:
    """Open intervals (minutes since midnight) for a civil date in the venue zone."""
    weekday = weekday_of_date(civil_day)
    window, _ = _rule_window(canonical.rule_for(weekday), WEEKDAY_LABELS[weekday])
    return [window] if window is not None else []


def resolve_day_bounds(civil_day: date, canonical: CanonicalHours) -> DayBounds | None:
    """Absolute open/close instants for a civil date, or None when closed.

    Days are not assumed to be 24 hours long; both ends are resolved through
    the zone independently.
    """
    intervals = get_open_intervals_for_date(canonical, civil_day)
    if not intervals:
        return None
    open_min, close_min = intervals[0]
    zone = canonical.zone
    start = civil_date_to_instant(zone, civil_day, open_min)
    close_at = civil_date_to_instant(zone, civil_day, close_min)
    return DayBounds(start=start, end=close_at - _END_EPSILON)


def _find_next_open(canonical: CanonicalHours, from_day: date, at: datetime) -> datetime | None:
    for offset in range(1, _NEXT_OPEN_SEARCH_DAYS + 1):
        bounds = resolve_day_bounds(from_day + timedelta(days=offset), canonical)
        if bounds is not None and bounds.start > at:
            return bounds.start
    return None


def get_open_status(canonical: CanonicalHours, at: datetime) -> OpenStatus:
    at = ensure_aware(at)
    zone = canonical.zone
    parts = civil_parts_in_zone(at, zone)
    today = parts.date
    label = parts.weekday_label

    def closed(status: str, diagnostic: str | None = None) -> OpenStatus:
        return OpenStatus(
            is_open=False,
            status=status,
            today_label=label,
            today_hours_text="Closed",
            next_open_at=_find_next_open(canonical, today, at),
            diagnostic_message=diagnostic,
        )

    window, diagnostic = _rule_window(canonical.rule_for(parts.weekday), label)
    if window is None:
        if diagnostic:
            logger.warning("invalid_weekly_rule timezone=%s %s", canonical.timezone, diagnostic)
        return closed(CLOSED_TODAY, diagnostic)

    open_min, close_min = window
    hours_text = f"{format_minutes_as_clock(open_min)} – {format_minutes_as_clock(close_min)}"
    bounds = resolve_day_bounds(today, canonical)
    if bounds is None:
        logger.warning("day_bounds_unresolved timezone=%s date=%s", canonical.timezone, today.isoformat())
        return closed(CLOSED_TODAY, diagnostic)

    if bounds.contains(at):
        return OpenStatus(is_open=True, status=OPEN_NOW, today_label=label, today_hours_text=hours_text)
    if at < bounds.start:
        return OpenStatus(
            is_open=False,
            status=OPENS_LATER,
            today_label=label,
            today_hours_text=hours_text,
            next_open_at=bounds.start,
        )
    return OpenStatus(
        is_open=False,
        status=CLOSED_NOW,
        today_label=label,
        today_hours_text=hours_text,
        next_open_at=_find_next_open(canonical, today, at),
    )


def is_reservation_within_canonical_hours(start_at: datetime, end_at: datetime, canonical: CanonicalHours) -> HoursCheck:
    """[start_at, end_at) must sit inside the open window of the day it starts on.

    A venue with no weekly hours at all is treated as always open.
    """
    if not canonical.weekly_hours:
        return HoursCheck(is_valid=True)
    start_at = ensure_aware(start_at)
    end_at = ensure_aware(end_at)
    start_day = civil_parts_in_zone(start_at, canonical.zone).date
    bounds = resolve_day_bounds(start_day, canonical)
    if bounds is None or start_at < bounds.start or end_at > bounds.close_at:
        return HoursCheck(is_valid=False, error=NOT_OPEN_MESSAGE)
    return HoursCheck(is_valid=True)


def get_slot_times_for_date(
    canonical: CanonicalHours, civil_day: date, step_minutes: int = 15
) -> list[tuple[datetime, datetime]]:
    """Slot boundaries (UTC) for a civil date inside the venue's open window."""
    zone = canonical.zone
    slots: list[tuple[datetime, datetime]] = []
    for open_min, close_min in get_open_intervals_for_date(canonical, civil_day):
        minute = open_min
        while minute + step_minutes <= close_min:
            start = civil_date_to_instant(zone, civil_day, minute)
            end = civil_date_to_instant(zone, civil_day, minute + step_minutes)
            # slots swallowed by a spring-forward gap collapse to nothing
            if end > start:
                slots.append((start, end))
            minute += step_minutes
    return slots


def format_weekly_hours(canonical: CanonicalHours) -> list[str]:
    out: list[str] = []
    for day, label in enumerate(WEEKDAY_LABELS):
        window, _ = _rule_window(canonical.rule_for(day), label)
        if window is None:
            out.append(f"{label}: Closed")
            continue
        open_min, close_min = window
        out.append(f"{label}: {format_minutes_as_clock(open_min)} – {format_minutes_as_clock(close_min)}")
    return out


class HoursCache:
    """Small in-process TTL cache for canonical hours, keyed by venue id."""

    def __init__(self, ttl_seconds: int, max_entries: int) -> None:
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_entries = max_entries
        self._entries: dict[str, tuple[datetime, CanonicalHours]] = {}
        self._lock = threading.Lock()

    def get(self, venue_id: str, now: datetime) -> CanonicalHours | None:
        with self._lock:
            hit = self._entries.get(venue_id)
            if hit is None:
                return None
            expires_at, value = hit
            if now >= expires_at:
                del self._entries[venue_id]
                return None
            return value

    def put(self, venue_id: str, value: CanonicalHours, now: datetime) -> None:
        with self._lock:
            self._entries.pop(venue_id, None)
            while self._entries and len(self._entries) >= self.max_entries:
                # dicts keep insertion order, so the first key is the oldest
                del self._entries[next(iter(self._entries))]
            self._entries[venue_id] = (now + self.ttl, value)

    def invalidate(self, venue_id: str | None = None) -> None:
        with self._lock:
            if venue_id is None:
                self._entries.clear()
            else:
                self._entries.pop(venue_id, None)


_cache: HoursCache | None = None


def _get_cache() -> HoursCache:
    global _cache
    if _cache is None:
        settings = get_settings()
        _cache = HoursCache(settings.hours_cache_ttl_seconds, settings.hours_cache_max_entries)
    return _cache


def invalidate_hours_cache(venue_id: str | None = None) -> None:
    """Drop cached hours for one venue (or all) after its rules change."""
    _get_cache().invalidate(venue_id)


def batch_resolve(store: "BookingStore", venue_ids: Sequence[str], clock: Clock) -> dict[str, CanonicalHours]:
    """Canonical hours for many venues; cached entries are reused, the rest loaded in one query."""
    cache = _get_cache()
    now = clock.now()
    result: dict[str, CanonicalHours] = {}
    missing: list[str] = []
    for venue_id in dict.fromkeys(venue_ids):
        cached = cache.get(venue_id, now)
        if cached is None:
            missing.append(venue_id)
        else:
            result[venue_id] = cached

    if missing:
        for venue in store.find_venues_by_ids(missing):
            canonical = canonical_from_venue(venue)
            cache.put(venue.id, canonical, now)
            result[venue.id] = canonical
    return result


def get_canonical_hours(store: "BookingStore", venue_id: str, clock: Clock) -> CanonicalHours | None:
    return batch_resolve(store, [venue_id], clock).get(venue_id)
