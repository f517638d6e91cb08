from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from factories import make_table, make_venue, utc
from seatbook.core.errors import (
    ConflictError,
    CrossVenueMismatchError,
    InactiveResourceError,
    InvalidInputError,
    NotFoundError,
    OutsideOperatingHoursError,
    PastTimeError,
    PolicyDeniedError,
    VenueNotBookableError,
)
from seatbook.models import Reservation
from seatbook.services.booking_context import MODE_GROUP, MODE_INDIVIDUAL, build_booking_context
from seatbook.services.booking_guard import PolicyDecision

START = "2025-02-10T17:00:00Z"  # noon in New York
END = "2025-02-10T18:00:00Z"


def individual(venue, seats, start=START, end=END):
    return {
        "mode": "individual",
        "venue_id": venue.id,
        "seat_ids": [s.id for s in seats],
        "start_at": start,
        "end_at": end,
    }


def group(venue, table_id, seat_count=4, start=START, end=END):
    return {
        "mode": "group",
        "venue_id": venue.id,
        "table_id": table_id,
        "seat_count": seat_count,
        "start_at": start,
        "end_at": end,
    }


class DenyAll:
    def check_allowed(self, venue, user_id, start_at, end_at):
        return PolicyDecision.deny("Not today.", "TEST_DENY")


def _existing(db, venue, *, seat=None, table=None, status="active", expires_at=None, start=START, end=END):
    row = Reservation(
        booking_id=f"existing-{status}",
        venue_id=venue.id,
        table_id=table.id if table is not None else seat.table_id,
        seat_id=seat.id if seat is not None else None,
        user_id="someone-else",
        start_at=utc(start.rstrip("Z")),
        end_at=utc(end.rstrip("Z")),
        seat_count=1,
        status=status,
        expires_at=expires_at,
    )
    db.add(row)
    db.commit()
    return row


def test_individual_context(store, clock, venue, seat_table):
    seats = seat_table.seats[:2]
    context = build_booking_context(store, individual(venue, seats), "user-1", clock=clock)

    assert context.mode == MODE_INDIVIDUAL
    assert context.venue_id == venue.id
    assert context.timezone == "America/New_York"
    assert context.seat_ids == tuple(sorted(s.id for s in seats))
    assert sorted(context.seat_rates_cents) == [1000, 2000]
    assert context.rate_per_hour_cents == 3000
    assert context.duration_hours == Decimal(1)
    assert context.seat_count == 2
    assert context.payment_account_id == "acct_test"
    assert not context.selector.is_group


def test_group_context(store, clock, venue, group_table):
    context = build_booking_context(store, group(venue, group_table.id, seat_count=3), "user-1", clock=clock)

    assert context.mode == MODE_GROUP
    assert context.is_group
    assert context.table_id == group_table.id
    assert context.rate_per_hour_cents == 5000
    assert context.table_seat_count == 6
    assert context.seat_count == 3
    assert context.selector.table_id == group_table.id


def test_end_before_start_is_invalid(store, clock, venue, seat_table):
    with pytest.raises(InvalidInputError):
        build_booking_context(store, individual(venue, seat_table.seats[:1], start=END, end=START), "u", clock=clock)


def test_zero_length_interval_is_invalid(store, clock, venue, seat_table):
    with pytest.raises(InvalidInputError):
        build_booking_context(store, individual(venue, seat_table.seats[:1], end=START), "u", clock=clock)


def test_naive_datetime_is_invalid(store, clock, venue, seat_table):
    payload = individual(venue, seat_table.seats[:1], start="2025-02-10T17:00:00", end="2025-02-10T18:00:00")
    with pytest.raises(InvalidInputError) as exc:
        build_booking_context(store, payload, "u", clock=clock)
    assert exc.value.details["errors"]


def test_non_positive_seat_count_is_invalid(store, clock, venue, group_table):
    with pytest.raises(InvalidInputError):
        build_booking_context(store, group(venue, group_table.id, seat_count=0), "u", clock=clock)


def test_past_start_fails_before_any_lookup(store, clock):
    payload = {
        "mode": "individual",
        "venue_id": "no-such-venue",
        "seat_ids": ["nope"],
        "start_at": "2025-02-10T14:00:00Z",
        "end_at": "2025-02-10T16:00:00Z",
    }
    with pytest.raises(PastTimeError):
        build_booking_context(store, payload, "u", clock=clock)


def test_unknown_venue(store, clock, venue, seat_table):
    payload = individual(venue, seat_table.seats[:1])
    payload["venue_id"] = "no-such-venue"
    with pytest.raises(NotFoundError):
        build_booking_context(store, payload, "u", clock=clock)


def test_unapproved_venue_is_not_bookable(db, store, clock):
    venue = make_venue(db, onboarding_status="SUBMITTED")
    table = make_table(db, venue, seat_prices=[1000])
    with pytest.raises(VenueNotBookableError):
        build_booking_context(store, individual(venue, table.seats), "u", clock=clock)


def test_paused_venue_is_denied_with_its_message(db, store, clock):
    venue = make_venue(db, status="PAUSED", pause_message="Back next week")
    table = make_table(db, venue, seat_prices=[1000])
    with pytest.raises(PolicyDeniedError) as exc:
        build_booking_context(store, individual(venue, table.seats), "u", clock=clock)
    assert exc.value.message == "Back next week"
    assert exc.value.details == {"reason_code": "VENUE_PAUSED"}


def test_injected_policy_is_used(store, clock, venue, seat_table):
    with pytest.raises(PolicyDeniedError):
        build_booking_context(store, individual(venue, seat_table.seats[:1]), "u", clock=clock, policy=DenyAll())


def test_outside_operating_hours(store, clock, venue, seat_table):
    # 10 PM to 11 PM local; the venue closes at 10 PM
    payload = individual(venue, seat_table.seats[:1], start="2025-02-11T03:00:00Z", end="2025-02-11T04:00:00Z")
    with pytest.raises(OutsideOperatingHoursError):
        build_booking_context(store, payload, "u", clock=clock)


def test_closed_day_is_outside_hours(db, store, clock):
    venue = make_venue(db, hours={d: (None if d == 1 else ("09:00", "22:00")) for d in range(7)})
    table = make_table(db, venue, seat_prices=[1000])
    with pytest.raises(OutsideOperatingHoursError):
        build_booking_context(store, individual(venue, table.seats), "u", clock=clock)


def test_venue_without_hours_accepts_any_time(db, store, clock):
    venue = make_venue(db, hours={})
    table = make_table(db, venue, seat_prices=[1000])
    payload = individual(venue, table.seats, start="2025-02-11T07:00:00Z", end="2025-02-11T08:00:00Z")
    assert build_booking_context(store, payload, "u", clock=clock).seat_count == 1


def test_missing_seat(store, clock, venue, seat_table):
    payload = individual(venue, seat_table.seats[:1])
    payload["seat_ids"].append("ghost-seat")
    with pytest.raises(NotFoundError) as exc:
        build_booking_context(store, payload, "u", clock=clock)
    assert exc.value.details == {"seat_ids": ["ghost-seat"]}


def test_seat_from_another_venue(db, store, clock, venue, seat_table):
    other = make_venue(db, name="Elsewhere")
    foreign = make_table(db, other, seat_prices=[1000])
    payload = individual(venue, [seat_table.seats[0], foreign.seats[0]])
    with pytest.raises(CrossVenueMismatchError):
        build_booking_context(store, payload, "u", clock=clock)


def test_inactive_seat(db, store, clock, venue, seat_table):
    seat_table.seats[1].is_active = False
    db.commit()
    with pytest.raises(InactiveResourceError):
        build_booking_context(store, individual(venue, seat_table.seats[:2]), "u", clock=clock)


def test_inactive_table(db, store, clock, venue, group_table):
    group_table.is_active = False
    db.commit()
    with pytest.raises(InactiveResourceError):
        build_booking_context(store, group(venue, group_table.id), "u", clock=clock)


def test_seat_on_group_table_cannot_be_booked_alone(db, store, clock, venue):
    booth = make_table(db, venue, name="Booth", booking_mode="group", seat_prices=[0, 0])
    with pytest.raises(InvalidInputError):
        build_booking_context(store, individual(venue, booth.seats[:1]), "u", clock=clock)


def test_group_booking_with_a_seat_id(store, clock, venue, seat_table):
    with pytest.raises(InvalidInputError) as exc:
        build_booking_context(store, group(venue, seat_table.seats[0].id), "u", clock=clock)
    assert "not a seat" in exc.value.message


def test_group_booking_on_unknown_table(store, clock, venue):
    with pytest.raises(NotFoundError):
        build_booking_context(store, group(venue, "no-such-table"), "u", clock=clock)


def test_group_booking_on_individual_table(store, clock, venue, seat_table):
    with pytest.raises(InvalidInputError):
        build_booking_context(store, group(venue, seat_table.id, seat_count=2), "u", clock=clock)


def test_group_booking_over_capacity(store, clock, venue, group_table):
    with pytest.raises(InvalidInputError) as exc:
        build_booking_context(store, group(venue, group_table.id, seat_count=7), "u", clock=clock)
    assert exc.value.details == {"seat_count": 7, "capacity": 6}


def test_group_table_in_another_venue(db, store, clock, venue):
    other = make_venue(db, name="Elsewhere")
    booth = make_table(db, other, booking_mode="group", seat_count=4, table_price_per_hour_cents=1000)
    with pytest.raises(CrossVenueMismatchError):
        build_booking_context(store, group(venue, booth.id), "u", clock=clock)


def test_precheck_conflict_on_taken_seat(db, store, clock, venue, seat_table):
    _existing(db, venue, seat=seat_table.seats[0], start="2025-02-10T17:30:00Z", end="2025-02-10T18:30:00Z")
    with pytest.raises(ConflictError):
        build_booking_context(store, individual(venue, seat_table.seats[:2]), "u", clock=clock)


def test_back_to_back_bookings_do_not_conflict(db, store, clock, venue, seat_table):
    _existing(db, venue, seat=seat_table.seats[0], start="2025-02-10T16:00:00Z", end=START)
    context = build_booking_context(store, individual(venue, seat_table.seats[:1]), "u", clock=clock)
    assert context.seat_count == 1


def test_precheck_conflict_on_taken_table(db, store, clock, venue, group_table):
    _existing(db, venue, table=group_table)
    with pytest.raises(ConflictError) as exc:
        build_booking_context(store, group(venue, group_table.id), "u", clock=clock)
    assert "table" in exc.value.message


def test_expired_hold_does_not_block(db, store, clock, venue, seat_table):
    _existing(
        db, venue, seat=seat_table.seats[0], status="pending", expires_at=clock.now() - timedelta(minutes=1)
    )
    context = build_booking_context(store, individual(venue, seat_table.seats[:1]), "u", clock=clock)
    assert context.seat_ids == (seat_table.seats[0].id,)


def test_live_hold_blocks(db, store, clock, venue, seat_table):
    _existing(
        db, venue, seat=seat_table.seats[0], status="pending", expires_at=clock.now() + timedelta(minutes=5)
    )
    with pytest.raises(ConflictError):
        build_booking_context(store, individual(venue, seat_table.seats[:1]), "u", clock=clock)


def test_cancelled_reservation_does_not_block(db, store, clock, venue, seat_table):
    _existing(db, venue, seat=seat_table.seats[0], status="cancelled")
    context = build_booking_context(store, individual(venue, seat_table.seats[:1]), "u", clock=clock)
    assert context.seat_count == 1
