from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from factories import make_venue, utc
from seatbook.core.clock import FixedClock
from seatbook.models import VenueHour
from seatbook.services import hours_service
from seatbook.services.hours_service import (
    CLOSED_NOW,
    CLOSED_TODAY,
    OPEN_NOW,
    OPENS_LATER,
    CanonicalHours,
    HoursCache,
    WeeklyHourRule,
    batch_resolve,
    canonical_from_venue,
    format_weekly_hours,
    get_canonical_hours,
    get_open_status,
    get_slot_times_for_date,
    invalidate_hours_cache,
    is_reservation_within_canonical_hours,
    resolve_day_bounds,
)

NY = "America/New_York"


def _every_day(open_time: str, close_time: str, tz: str = NY) -> CanonicalHours:
    return CanonicalHours(
        timezone=tz,
        weekly_hours=tuple(WeeklyHourRule(d, False, open_time, close_time) for d in range(7)),
    )


def _ms(text: str) -> datetime:
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def test_full_day_bounds_regular_day():
    bounds = resolve_day_bounds(date(2025, 2, 10), _every_day("00:00", "24:00"))
    assert bounds.start == _ms("2025-02-10T05:00:00.000")
    assert bounds.end == _ms("2025-02-11T04:59:59.999")


def test_full_day_bounds_spring_forward_is_23_hours():
    bounds = resolve_day_bounds(date(2025, 3, 9), _every_day("00:00", "24:00"))
    assert bounds.start == _ms("2025-03-09T05:00:00.000")
    assert bounds.end == _ms("2025-03-10T03:59:59.999")
    assert bounds.close_at - bounds.start == timedelta(hours=23)


def test_full_day_bounds_fall_back_is_25_hours():
    bounds = resolve_day_bounds(date(2025, 11, 2), _every_day("00:00", "24:00"))
    assert bounds.start == _ms("2025-11-02T04:00:00.000")
    assert bounds.end == _ms("2025-11-03T04:59:59.999")
    assert bounds.close_at - bounds.start == timedelta(hours=25)


def test_2359_close_means_midnight():
    bounds = resolve_day_bounds(date(2025, 2, 10), _every_day("09:00", "23:59"))
    assert bounds.end == _ms("2025-02-11T04:59:59.999")


def test_closed_and_invalid_days_have_no_bounds():
    canonical = CanonicalHours(
        timezone=NY,
        weekly_hours=(
            WeeklyHourRule(1, True, None, None),
            WeeklyHourRule(2, False, "18:00", "09:00"),
            WeeklyHourRule(3, False, "nine", "17:00"),
        ),
    )
    assert resolve_day_bounds(date(2025, 2, 10), canonical) is None  # Mon closed
    assert resolve_day_bounds(date(2025, 2, 11), canonical) is None  # Tue close before open
    assert resolve_day_bounds(date(2025, 2, 12), canonical) is None  # Wed malformed
    assert resolve_day_bounds(date(2025, 2, 13), canonical) is None  # Thu no rule


def test_open_status_open_now():
    status = get_open_status(_every_day("09:00", "17:00"), utc("2025-02-10T15:00:00"))
    assert status.is_open
    assert status.status == OPEN_NOW
    assert status.today_label == "Mon"
    assert status.today_hours_text == "9:00 AM – 5:00 PM"


def test_open_status_opens_later_today():
    status = get_open_status(_every_day("09:00", "17:00"), utc("2025-02-10T12:00:00"))
    assert not status.is_open
    assert status.status == OPENS_LATER
    assert status.next_open_at == utc("2025-02-10T14:00:00")


def test_open_status_closed_now_points_at_tomorrow():
    status = get_open_status(_every_day("09:00", "17:00"), utc("2025-02-10T23:00:00"))
    assert status.status == CLOSED_NOW
    assert status.next_open_at == utc("2025-02-11T14:00:00")


def test_open_status_closed_today_searches_ahead():
    canonical = CanonicalHours(timezone=NY, weekly_hours=(WeeklyHourRule(4, False, "10:00", "14:00"),))
    status = get_open_status(canonical, utc("2025-02-10T15:00:00"))
    assert status.status == CLOSED_TODAY
    assert status.today_hours_text == "Closed"
    assert status.next_open_at == utc("2025-02-13T15:00:00")  # Thursday 10:00 EST


def test_open_status_invalid_rule_has_diagnostic(caplog):
    canonical = CanonicalHours(timezone=NY, weekly_hours=(WeeklyHourRule(1, False, "17:00", "09:00"),))
    with caplog.at_level("WARNING"):
        status = get_open_status(canonical, utc("2025-02-10T15:00:00"))
    assert status.status == CLOSED_TODAY
    assert "close before or equal to open" in status.diagnostic_message
    assert "invalid_weekly_rule" in caplog.text


def test_open_status_without_day_bounds_reports_closed(monkeypatch, caplog):
    monkeypatch.setattr(hours_service, "resolve_day_bounds", lambda day, canonical: None)
    with caplog.at_level("WARNING"):
        status = get_open_status(_every_day("09:00", "17:00"), utc("2025-02-10T15:00:00"))
    assert not status.is_open
    assert status.status == CLOSED_TODAY
    assert "day_bounds_unresolved" in caplog.text


def test_no_hours_at_all_is_always_valid():
    check = is_reservation_within_canonical_hours(
        utc("2025-02-10T03:00:00"), utc("2025-02-10T04:00:00"), CanonicalHours(timezone=NY)
    )
    assert check.is_valid


def test_reservation_inside_hours():
    canonical = _every_day("09:00", "17:00")
    assert is_reservation_within_canonical_hours(utc("2025-02-10T14:00:00"), utc("2025-02-10T22:00:00"), canonical).is_valid
    early = is_reservation_within_canonical_hours(utc("2025-02-10T13:45:00"), utc("2025-02-10T15:00:00"), canonical)
    assert not early.is_valid
    assert "isn't open" in early.error
    late = is_reservation_within_canonical_hours(utc("2025-02-10T21:00:00"), utc("2025-02-10T22:15:00"), canonical)
    assert not late.is_valid


def test_reservation_spanning_into_next_day_is_rejected():
    canonical = _every_day("00:00", "24:00")
    check = is_reservation_within_canonical_hours(utc("2025-02-11T04:00:00"), utc("2025-02-11T06:00:00"), canonical)
    assert not check.is_valid


def test_slots_for_date():
    slots = get_slot_times_for_date(_every_day("09:00", "10:00"), date(2025, 2, 10))
    assert [s for s, _ in slots] == [
        utc("2025-02-10T14:00:00"),
        utc("2025-02-10T14:15:00"),
        utc("2025-02-10T14:30:00"),
        utc("2025-02-10T14:45:00"),
    ]
    assert slots[-1][1] == utc("2025-02-10T15:00:00")


def test_slots_skip_spring_forward_gap():
    slots = get_slot_times_for_date(_every_day("01:00", "04:00"), date(2025, 3, 9))
    # 01:00-02:00 EST then 03:00-04:00 EDT; the missing hour yields no slots
    assert len(slots) == 8


def test_format_weekly_hours():
    canonical = CanonicalHours(
        timezone=NY,
        weekly_hours=(WeeklyHourRule(1, False, "09:00", "17:00"), WeeklyHourRule(5, False, "18:00", "23:59")),
    )
    lines = format_weekly_hours(canonical)
    assert lines[0] == "Sun: Closed"
    assert lines[1] == "Mon: 9:00 AM – 5:00 PM"
    assert lines[5] == "Fri: 6:00 PM – 12:00 AM"
    assert len(lines) == 7


def test_manual_hours_take_precedence_only_when_selected(db):
    venue = make_venue(db, hours={1: ("09:00", "17:00")}, source="google")
    venue.hours.append(VenueHour(day_of_week=1, open_time="12:00", close_time="14:00", source="manual"))
    db.commit()

    assert canonical_from_venue(venue).rule_for(1).open_time == "09:00"
    venue.hours_source = "manual"
    assert canonical_from_venue(venue).rule_for(1).open_time == "12:00"


def test_missing_timezone_uses_default(db):
    venue = make_venue(db, tz=None)
    assert canonical_from_venue(venue).timezone == NY


def test_batch_resolve_caches_until_ttl(db, store):
    clock = FixedClock(utc("2025-02-10T15:00:00"))
    venue = make_venue(db, hours={1: ("09:00", "17:00")})
    other = make_venue(db, name="Other", hours={})

    first = batch_resolve(store, [venue.id, other.id, "missing"], clock)
    assert set(first) == {venue.id, other.id}
    assert first[other.id].weekly_hours == ()

    venue.hours[0].open_time = "10:00"
    db.commit()
    assert get_canonical_hours(store, venue.id, clock).rule_for(1).open_time == "09:00"

    invalidate_hours_cache(venue.id)
    assert get_canonical_hours(store, venue.id, clock).rule_for(1).open_time == "10:00"

    venue.hours[0].open_time = "11:00"
    db.commit()
    clock.advance(seconds=301)
    assert get_canonical_hours(store, venue.id, clock).rule_for(1).open_time == "11:00"


def test_hours_cache_evicts_oldest():
    cache = HoursCache(ttl_seconds=60, max_entries=2)
    now = utc("2025-02-10T15:00:00")
    for key in ("a", "b", "c"):
        cache.put(key, CanonicalHours(timezone=NY), now)
    assert cache.get("a", now) is None
    assert cache.get("b", now) is not None
    assert cache.get("c", now) is not None
