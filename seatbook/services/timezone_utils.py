"""Civil-time helpers.

DST: a skipped local time resolves to the transition instant, a repeated one to its first occurrence.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from seatbook.core.config import get_settings

logger = logging.getLogger(__name__)

UTC = timezone.utc
MINUTES_PER_DAY = 24 * 60
WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_CLOCK_RE = re.compile(r"^([0-9]{1,2}):([0-9]{2})$")


@dataclass(frozen=True)
class CivilParts:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    weekday: int  # 0=Sunday .. 6=Saturday

    @property
    def weekday_label(self) -> str:
        return WEEKDAY_LABELS[self.weekday]

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)

    @property
    def minutes_since_midnight(self) -> int:
        return self.hour * 60 + self.minute


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the zone for ``name``, falling back to the configured default."""
    default = get_settings().default_timezone
    if not name:
        logger.info("timezone_missing fallback=%s", default)
        return ZoneInfo(default)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("timezone_unknown name=%r fallback=%s", name, default)
        return ZoneInfo(default)


def _as_zone(tz: str | ZoneInfo | None) -> ZoneInfo:
    if isinstance(tz, ZoneInfo):
        return tz
    return resolve_timezone(tz)


def ensure_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("naive datetime; an absolute instant is required")
    return instant


def civil_parts_in_zone(instant: datetime, tz: str | ZoneInfo | None) -> CivilParts:
    local = ensure_aware(instant).astimezone(_as_zone(tz))
    return CivilParts(
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
        weekday=local.isoweekday() % 7,
    )


def weekday_of_date(d: date) -> int:
    """Weekday of a civil date, 0=Sunday."""
    return d.isoweekday() % 7


def _transition_instant(zone: ZoneInfo, before: datetime, after: datetime) -> datetime:
    # ``before`` carries the pre-transition offset, ``after`` the post one.
    target = after.astimezone(zone).utcoffset()
    lo, hi = before, after
    while hi - lo > timedelta(seconds=1):
        mid = (lo + (hi - lo) / 2).replace(microsecond=0)
        if mid <= lo:
            break
        if mid.astimezone(zone).utcoffset() == target:
            hi = mid
        else:
            lo = mid
    return hi


def civil_time_to_instant(
    tz: str | ZoneInfo | None,
    year: int,
    month: int,
    day: int,
    hour: int,
    minute: int,
) -> datetime:
    """Resolve a wall-clock time in ``tz`` to a UTC instant.

    ``hour=24, minute=0`` means midnight at the start of the following day.
    """
    zone = _as_zone(tz)
    civil_day = date(year, month, day)
    if hour == 24 and minute == 0:
        civil_day = civil_day + timedelta(days=1)
        hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"invalid wall-clock time {hour:02d}:{minute:02d}")

    wall = datetime(civil_day.year, civil_day.month, civil_day.day, hour, minute)
    first = wall.replace(tzinfo=zone, fold=0).astimezone(UTC)
    if first.astimezone(zone).replace(tzinfo=None) == wall:
        return first

    # Inside a gap: fold=1 applies the post-transition offset and lands before
    # the transition, fold=0 the pre-transition offset and lands after it.
    second = wall.replace(tzinfo=zone, fold=1).astimezone(UTC)
    before, after = sorted((first, second))
    return _transition_instant(zone, before, after)


def civil_date_to_instant(tz: str | ZoneInfo | None, civil_day: date, minutes_since_midnight: int) -> datetime:
    hour, minute = divmod(minutes_since_midnight, 60)
    return civil_time_to_instant(tz, civil_day.year, civil_day.month, civil_day.day, hour, minute)


def parse_clock_string(value: str | None) -> int | None:
    """Parse "H:MM"/"HH:MM" into minutes since midnight.

    Returns None for anything malformed. "24:00" is 1440 (end of day).
    """
    if not value or not isinstance(value, str):
        return None
    match = _CLOCK_RE.match(value.strip())
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2))
    if hour > 24 or minute > 59:
        return None
    if hour == 24 and minute != 0:
        return None
    return hour * 60 + minute


def format_minutes_as_clock(minutes: int) -> str:
    """570 -> "9:30 AM", 1440 -> "12:00 AM"."""
    total_hours, minute = divmod(minutes, 60)
    hour = total_hours % 24
    period = "PM" if 12 <= total_hours < 24 else "AM"
    display_hour = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    return f"{display_hour}:{minute:02d} {period}"


def format_instant_as_clock(instant: datetime, tz: str | ZoneInfo | None) -> str:
    return format_minutes_as_clock(civil_parts_in_zone(instant, tz).minutes_since_midnight)


def effective_close_minutes(close_raw: str | None) -> int | None:
    # "23:59" is stored by some sources to mean "until midnight"
    if close_raw is not None and close_raw.strip() == "23:59":
        return MINUTES_PER_DAY
    return parse_clock_string(close_raw)


def round_up_to_next_quarter_hour(instant: datetime) -> datetime:
    instant = ensure_aware(instant).astimezone(UTC)
    remainder = instant.minute % 15
    if remainder == 0 and instant.second == 0 and instant.microsecond == 0:
        return instant
    base = instant.replace(second=0, microsecond=0)
    return base + timedelta(minutes=15 - remainder)


def is_clock_time_within_range(clock: str, open_clock: str, close_clock_raw: str) -> bool:
    """Inclusive check of ``clock`` against ``[open, close]``."""
    t = parse_clock_string(clock)
    open_min = parse_clock_string(open_clock)
    close_min = effective_close_minutes(close_clock_raw)
    if t is None or open_min is None or close_min is None:
        return False
    return open_min <= t <= close_min
