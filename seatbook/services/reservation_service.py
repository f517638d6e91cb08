from __future__ import annotations

import logging
import uuid
from datetime import timedelta

from fastapi import Request
from sqlalchemy.orm import Session

from seatbook.core.clock import Clock
from seatbook.core.config import get_settings
from seatbook.core.errors import ConflictError, NotFoundError
from seatbook.models.reservation import STATUS_ACTIVE, STATUS_CANCELLED, STATUS_PENDING, Reservation
from seatbook.services.audit_service import write_audit_log
from seatbook.services.booking_context import BookingContext
from seatbook.services.notification_queue import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMATION,
    booking_confirmation_key,
    enqueue_notification,
)
from seatbook.services.timezone_utils import format_instant_as_clock
from seatbook.stores.interfaces import BookingStore, ResourceSelector
from seatbook.stores.sql_store import SqlAlchemyBookingStore

logger = logging.getLogger(__name__)


def _reservation_records(context: BookingContext, user_id: str, *, status: str, expires_at) -> list[dict]:
    booking_id = str(uuid.uuid4())
    common = {
        "booking_id": booking_id,
        "venue_id": context.venue_id,
        "user_id": user_id,
        "start_at": context.start_at,
        "end_at": context.end_at,
        "status": status,
        "expires_at": expires_at,
    }
    if context.is_group:
        return [{**common, "table_id": context.table_id, "seat_id": None, "seat_count": context.seat_count}]
    # one row per seat so each seat's interval is guarded on its own
    return [
        {**common, "table_id": table_id, "seat_id": seat_id, "seat_count": 1}
        for seat_id, table_id in zip(context.seat_ids, context.seat_table_ids)
    ]


def _selector_for_rows(rows: list[Reservation]) -> ResourceSelector:
    if rows[0].seat_id is None:
        return ResourceSelector.for_table(rows[0].table_id)
    return ResourceSelector.for_seats([r.seat_id for r in rows])


def _booking_summary(rows: list[Reservation]) -> dict:
    primary = rows[0]
    venue = primary.venue
    tz = venue.timezone if venue is not None else None
    seat_labels = [r.seat.label for r in rows if r.seat is not None]
    table = primary.table
    return {
        "booking_id": primary.booking_id,
        "reservation_id": primary.id,
        "venue_id": primary.venue_id,
        "venue_name": venue.name if venue is not None else "",
        "start_at": primary.start_at.isoformat(),
        "end_at": primary.end_at.isoformat(),
        "start_time_label": format_instant_as_clock(primary.start_at, tz),
        "end_time_label": format_instant_as_clock(primary.end_at, tz),
        "table_name": table.name if table is not None else "",
        "directions_text": table.directions_text if table is not None else "",
        "seat_labels": seat_labels,
        "seat_count": sum(r.seat_count for r in rows),
    }


def _queue_confirmation(db: Session, rows: list[Reservation]) -> None:
    primary = rows[0]
    enqueue_notification(
        db,
        type=BOOKING_CONFIRMATION,
        dedupe_key=booking_confirmation_key(primary.id),
        payload=_booking_summary(rows),
        user_id=primary.user_id,
        venue_id=primary.venue_id,
        booking_id=primary.booking_id,
    )


def write_reservation(
    db: Session,
    context: BookingContext,
    user_id: str,
    *,
    clock: Clock,
    status: str = STATUS_ACTIVE,
    hold_minutes: int | None = None,
    store: BookingStore | None = None,
    request: Request | None = None,
) -> list[Reservation]:
    """Persist a validated booking and return its rows, primary row first.

    Raises ``ConflictError`` when the interval was taken after the context was
    built; in that case nothing is written.
    """
    if status not in (STATUS_ACTIVE, STATUS_PENDING):
        raise ValueError(f"cannot write a reservation with status {status!r}")
    store = store or SqlAlchemyBookingStore(db)
    now = clock.now()

    expires_at = None
    if status == STATUS_PENDING:
        minutes = get_settings().pending_hold_minutes if hold_minutes is None else hold_minutes
        expires_at = now + timedelta(minutes=minutes)

    records = _reservation_records(context, user_id, status=status, expires_at=expires_at)
    rows = store.create_reservations(context.selector, records, now)
    primary = rows[0]
    logger.info(
        "reservation_created booking_id=%s venue_id=%s rows=%d status=%s",
        primary.booking_id,
        primary.venue_id,
        len(rows),
        status,
    )

    if status == STATUS_ACTIVE:
        _queue_confirmation(db, rows)
    write_audit_log(
        db,
        actor_user_id=user_id,
        action_type="reservation.create",
        target_type="booking",
        target_id=primary.booking_id,
        summary=f"{context.mode} booking at {context.venue_name}",
        diff_json={
            "status": status,
            "reservation_ids": [r.id for r in rows],
            "start_at": context.start_at.isoformat(),
            "end_at": context.end_at.isoformat(),
        },
        request=request,
    )
    return rows


def _load_booking(store: BookingStore, booking_id: str, user_id: str | None) -> list[Reservation]:
    rows = store.find_reservations_by_booking(booking_id)
    # someone else's booking looks the same as a missing one
    if not rows or (user_id is not None and rows[0].user_id != user_id):
        raise NotFoundError("Booking not found.", details={"booking_id": booking_id})
    return rows


def confirm_pending_booking(
    db: Session,
    booking_id: str,
    *,
    clock: Clock,
    user_id: str | None = None,
    store: BookingStore | None = None,
) -> list[Reservation]:
    """Turn a pending (payment in flight) booking into an active one."""
    store = store or SqlAlchemyBookingStore(db)
    rows = _load_booking(store, booking_id, user_id)
    if all(r.status == STATUS_ACTIVE for r in rows):
        return rows
    if any(r.status == STATUS_CANCELLED for r in rows):
        raise ConflictError("This booking was cancelled.")

    primary = rows[0]
    # Expired holds no longer guard their slot; someone may have taken it since.
    store.activate_reservations(_selector_for_rows(rows), rows, clock.now())
    logger.info("reservation_confirmed booking_id=%s", booking_id)
    _queue_confirmation(db, rows)
    write_audit_log(
        db,
        actor_user_id=user_id or primary.user_id,
        action_type="reservation.confirm",
        target_type="booking",
        target_id=booking_id,
        summary="pending booking confirmed",
    )
    return rows


def cancel_booking(
    db: Session,
    booking_id: str,
    *,
    clock: Clock,
    user_id: str | None = None,
    reason: str = "",
    store: BookingStore | None = None,
    request: Request | None = None,
) -> list[Reservation]:
    store = store or SqlAlchemyBookingStore(db)
    rows = _load_booking(store, booking_id, user_id)
    open_rows = [r for r in rows if r.status != STATUS_CANCELLED]
    if not open_rows:
        return rows

    store.update_reservations_status(open_rows, STATUS_CANCELLED, now=clock.now(), reason=reason)
    logger.info("reservation_cancelled booking_id=%s rows=%d", booking_id, len(open_rows))

    primary = rows[0]
    enqueue_notification(
        db,
        type=BOOKING_CANCELLED,
        dedupe_key=f"{BOOKING_CANCELLED}:{primary.id}",
        payload={**_booking_summary(rows), "reason": reason},
        user_id=primary.user_id,
        venue_id=primary.venue_id,
        booking_id=booking_id,
    )
    write_audit_log(
        db,
        actor_user_id=user_id or primary.user_id,
        action_type="reservation.cancel",
        target_type="booking",
        target_id=booking_id,
        summary=reason or "cancelled",
        diff_json={"reservation_ids": [r.id for r in open_rows]},
        request=request,
    )
    return rows


def expire_pending_reservations(db: Session, *, clock: Clock, store: BookingStore | None = None) -> int:
    """Cancel pending rows whose hold has run out. Returns the number of rows touched."""
    store = store or SqlAlchemyBookingStore(db)
    now = clock.now()
    rows = store.find_expired_pending(now)
    if not rows:
        return 0
    store.update_reservations_status(rows, STATUS_CANCELLED, now=now, reason="hold_expired")
    logger.info("reservation_expired rows=%d booking_ids=%s", len(rows), sorted({r.booking_id for r in rows}))
    return len(rows)
