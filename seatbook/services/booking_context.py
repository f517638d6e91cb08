from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping

from pydantic import TypeAdapter, ValidationError

from seatbook.core.clock import Clock
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
from seatbook.models import Seat, Venue, VenueTable
from seatbook.schemas.booking import BookingRequest, GroupBookingRequest, IndividualBookingRequest
from seatbook.services.booking_guard import BookingPolicy, default_policy
from seatbook.services.hours_service import canonical_from_venue, is_reservation_within_canonical_hours
from seatbook.stores.interfaces import BookingStore, ResourceSelector

logger = logging.getLogger(__name__)

MODE_INDIVIDUAL = "individual"
MODE_GROUP = "group"

_MICROS_PER_HOUR = Decimal(3_600_000_000)
_request_adapter: TypeAdapter = TypeAdapter(BookingRequest)


@dataclass(frozen=True)
class BookingContext:
    venue_id: str
    venue_name: str
    timezone: str
    mode: str
    start_at: datetime
    end_at: datetime
    seat_ids: tuple[str, ...] = ()
    seat_rates_cents: tuple[int, ...] = ()
    seat_table_ids: tuple[str, ...] = ()
    table_id: str | None = None
    table_rate_cents: int = 0
    table_seat_count: int = 0
    seat_count: int = 1
    payment_account_id: str | None = None

    @property
    def is_group(self) -> bool:
        return self.mode == MODE_GROUP

    @property
    def rate_per_hour_cents(self) -> int:
        if self.is_group:
            return self.table_rate_cents
        return sum(self.seat_rates_cents)

    @property
    def duration_hours(self) -> Decimal:
        micros = (self.end_at - self.start_at) // timedelta(microseconds=1)
        return Decimal(micros) / _MICROS_PER_HOUR

    @property
    def selector(self) -> ResourceSelector:
        if self.is_group:
            return ResourceSelector.for_table(self.table_id)
        return ResourceSelector.for_seats(self.seat_ids)


def parse_booking_request(payload: Mapping[str, Any]) -> IndividualBookingRequest | GroupBookingRequest:
    try:
        return _request_adapter.validate_python(payload)
    except ValidationError as exc:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        raise InvalidInputError("Invalid booking request.", details={"errors": errors}) from exc


def _table_capacity(table: VenueTable) -> int:
    if table.seat_count:
        return table.seat_count
    return len(table.seats)


def _resolve_group(store: BookingStore, venue: Venue, request: GroupBookingRequest) -> VenueTable:
    table = store.find_table_by_id(request.table_id)
    if table is None:
        if store.find_seat_by_id(request.table_id) is not None:
            raise InvalidInputError("Group bookings must reference a table, not a seat.")
        raise NotFoundError("Table not found.", details={"table_id": request.table_id})
    if table.venue_id != venue.id:
        raise CrossVenueMismatchError("This table does not belong to the selected venue.")
    if not table.is_active:
        raise InactiveResourceError("This table is no longer available.")
    if table.booking_mode != MODE_GROUP:
        raise InvalidInputError("This table is booked by individual seat.")
    capacity = _table_capacity(table)
    if request.seat_count > capacity:
        raise InvalidInputError(
            f"This table seats at most {capacity}.", details={"seat_count": request.seat_count, "capacity": capacity}
        )
    return table


def _resolve_seats(store: BookingStore, venue: Venue, request: IndividualBookingRequest) -> list[Seat]:
    seats = store.find_seats_by_ids(request.seat_ids)
    found = {s.id: s for s in seats}
    missing = [sid for sid in request.seat_ids if sid not in found]
    if missing:
        raise NotFoundError("Seat not found.", details={"seat_ids": missing})

    ordered = [found[sid] for sid in sorted(found)]
    for seat in ordered:
        if seat.table.venue_id != venue.id:
            raise CrossVenueMismatchError("One or more seats do not belong to the selected venue.")
    for seat in ordered:
        if not seat.is_active or not seat.table.is_active:
            raise InactiveResourceError("This seat or table is no longer available.")
        if seat.table.booking_mode == MODE_GROUP:
            raise InvalidInputError("This table can only be booked as a whole.")
    return ordered


def build_booking_context(
    store: BookingStore,
    request: IndividualBookingRequest | GroupBookingRequest | Mapping[str, Any],
    user_id: str,
    *,
    clock: Clock,
    policy: BookingPolicy | None = None,
) -> BookingContext:
    if not isinstance(request, (IndividualBookingRequest, GroupBookingRequest)):
        request = parse_booking_request(request)

    start_at = request.start_at
    end_at = request.end_at
    if end_at <= start_at:
        raise InvalidInputError("End time must be after start time.")
    now = clock.now()
    if start_at < now:
        raise PastTimeError()

    venue = store.find_venue_by_id(request.venue_id)
    if venue is None:
        raise NotFoundError("Venue not found.", details={"venue_id": request.venue_id})
    if venue.onboarding_status != "APPROVED":
        raise VenueNotBookableError()

    policy = policy if policy is not None else default_policy(store, clock)
    decision = policy.check_allowed(venue, user_id, start_at, end_at)
    if not decision.allowed:
        raise PolicyDeniedError(decision.reason, details={"reason_code": decision.code})

    canonical = canonical_from_venue(venue)
    check = is_reservation_within_canonical_hours(start_at, end_at, canonical)
    if not check.is_valid:
        raise OutsideOperatingHoursError(check.error or "Outside operating hours.")

    if isinstance(request, GroupBookingRequest):
        table = _resolve_group(store, venue, request)
        context = BookingContext(
            venue_id=venue.id,
            venue_name=venue.name,
            timezone=canonical.timezone,
            mode=MODE_GROUP,
            start_at=start_at,
            end_at=end_at,
            table_id=table.id,
            table_rate_cents=table.table_price_per_hour_cents,
            table_seat_count=_table_capacity(table),
            seat_count=request.seat_count,
            payment_account_id=venue.payment_account_id,
        )
    else:
        seats = _resolve_seats(store, venue, request)
        context = BookingContext(
            venue_id=venue.id,
            venue_name=venue.name,
            timezone=canonical.timezone,
            mode=MODE_INDIVIDUAL,
            start_at=start_at,
            end_at=end_at,
            seat_ids=tuple(s.id for s in seats),
            seat_rates_cents=tuple(s.price_per_hour_cents for s in seats),
            seat_table_ids=tuple(s.table_id for s in seats),
            seat_count=len(seats),
            payment_account_id=venue.payment_account_id,
        )

    selector = context.selector
    if store.find_overlapping_reservations(selector, start_at, end_at, now):
        logger.info("reservation_conflict stage=precheck venue_id=%s", venue.id)
        raise ConflictError(selector.conflict_message)
    return context
