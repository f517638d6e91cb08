from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from factories import utc
from seatbook.services.timezone_utils import (
    civil_parts_in_zone,
    civil_time_to_instant,
    format_minutes_as_clock,
    is_clock_time_within_range,
    parse_clock_string,
    resolve_timezone,
    round_up_to_next_quarter_hour,
)

NY = "America/New_York"


def test_parse_clock_string():
    assert parse_clock_string("9:30") == 570
    assert parse_clock_string("09:30") == 570
    assert parse_clock_string("24:00") == 1440
    assert parse_clock_string("00:00") == 0


@pytest.mark.parametrize(
    "raw", ["invalid", "", None, "24:01", "25:00", "9:60", "9:5", "12:300", "-1:00", "९:३०", "٩:٣٠", "９:３０"]
)
def test_parse_clock_string_rejects_garbage(raw):
    assert parse_clock_string(raw) is None


def test_clock_range_treats_2359_close_as_end_of_day():
    assert is_clock_time_within_range("23:59", "09:00", "23:59")
    assert is_clock_time_within_range("23:58", "09:00", "23:59")
    assert is_clock_time_within_range("09:00", "09:00", "17:00")
    assert is_clock_time_within_range("17:00", "09:00", "17:00")
    assert not is_clock_time_within_range("08:59", "09:00", "17:00")
    assert not is_clock_time_within_range("bogus", "09:00", "17:00")


def test_round_up_to_next_quarter_hour():
    assert round_up_to_next_quarter_hour(utc("2025-02-10T10:07:00")).minute == 15
    exact = utc("2025-02-10T10:15:00")
    assert round_up_to_next_quarter_hour(exact) == exact
    assert round_up_to_next_quarter_hour(utc("2025-02-10T10:15:01")).minute == 30
    assert round_up_to_next_quarter_hour(utc("2025-02-10T10:50:00")) == utc("2025-02-10T11:00:00")


def test_round_up_rejects_naive_datetime():
    with pytest.raises(ValueError):
        round_up_to_next_quarter_hour(datetime(2025, 2, 10, 10, 7))


def test_civil_parts_are_venue_local():
    parts = civil_parts_in_zone(utc("2025-02-10T03:30:00"), NY)
    assert (parts.year, parts.month, parts.day) == (2025, 2, 9)
    assert (parts.hour, parts.minute) == (22, 30)
    assert parts.weekday == 0
    assert parts.weekday_label == "Sun"


def test_civil_time_to_instant_regular_day():
    assert civil_time_to_instant(NY, 2025, 2, 10, 9, 0) == utc("2025-02-10T14:00:00")


def test_civil_time_to_instant_2400_is_next_midnight():
    assert civil_time_to_instant(NY, 2025, 2, 10, 24, 0) == utc("2025-02-11T05:00:00")


def test_spring_forward_gap_resolves_to_transition():
    # 02:30 does not exist on 2025-03-09 in New York; clocks jump 02:00 -> 03:00
    resolved = civil_time_to_instant(NY, 2025, 3, 9, 2, 30)
    assert resolved == utc("2025-03-09T07:00:00")
    assert civil_time_to_instant(NY, 2025, 3, 9, 3, 0) == utc("2025-03-09T07:00:00")


def test_fall_back_overlap_resolves_to_first_occurrence():
    # 01:30 happens twice on 2025-11-02; the EDT one comes first
    assert civil_time_to_instant(NY, 2025, 11, 2, 1, 30) == utc("2025-11-02T05:30:00")


def test_format_minutes_as_clock():
    assert format_minutes_as_clock(0) == "12:00 AM"
    assert format_minutes_as_clock(570) == "9:30 AM"
    assert format_minutes_as_clock(720) == "12:00 PM"
    assert format_minutes_as_clock(1305) == "9:45 PM"
    assert format_minutes_as_clock(1440) == "12:00 AM"


def test_unknown_timezone_falls_back_and_logs(caplog):
    with caplog.at_level("WARNING", logger="seatbook.services.timezone_utils"):
        zone = resolve_timezone("Mars/Olympus_Mons")
    assert zone.key == NY
    assert "timezone_unknown" in caplog.text


def test_missing_timezone_falls_back():
    assert resolve_timezone(None).key == NY
    assert resolve_timezone("").key == NY


def test_results_independent_of_host_zone(monkeypatch):
    monkeypatch.setenv("TZ", "Asia/Tokyo")
    instant = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
    parts = civil_parts_in_zone(instant, NY)
    assert (parts.hour, parts.weekday) == (8, date(2025, 7, 1).isoweekday() % 7)
