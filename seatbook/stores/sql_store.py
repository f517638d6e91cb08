"""SQLAlchemy ``BookingStore``; writes lock the seat/table rows before the overlap re-check."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from seatbook.core.errors import ConflictError
from seatbook.models import Reservation, Seat, Venue, VenueTable
from seatbook.models.reservation import STATUS_ACTIVE, STATUS_CANCELLED, STATUS_PENDING
from seatbook.stores.interfaces import BookingStore, ResourceSelector

logger = logging.getLogger(__name__)


def live_reservation_clause(now: datetime):
    """Active rows, plus pending rows whose hold has not run out."""
    return or_(
        Reservation.status == STATUS_ACTIVE,
        and_(
            Reservation.status == STATUS_PENDING,
            or_(Reservation.expires_at.is_(None), Reservation.expires_at > now),
        ),
    )


def _selector_clause(selector: ResourceSelector):
    if selector.is_group:
        return and_(Reservation.table_id == selector.table_id, Reservation.seat_id.is_(None))
    return Reservation.seat_id.in_(selector.seat_ids)


def _overlap_query(selector: ResourceSelector, start_at: datetime, end_at: datetime, now: datetime):
    return (
        select(Reservation)
        .where(_selector_clause(selector))
        .where(live_reservation_clause(now))
        .where(Reservation.start_at < end_at)
        .where(Reservation.end_at > start_at)
    )


class SqlAlchemyBookingStore(BookingStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_venue_by_id(self, venue_id: str) -> Venue | None:
        q = select(Venue).where(Venue.id == venue_id).options(selectinload(Venue.hours))
        return self.db.execute(q).scalar_one_or_none()

    def find_venues_by_ids(self, venue_ids: Sequence[str]) -> list[Venue]:
        if not venue_ids:
            return []
        q = select(Venue).where(Venue.id.in_(list(venue_ids))).options(selectinload(Venue.hours))
        return list(self.db.execute(q).scalars().all())

    def find_table_by_id(self, table_id: str) -> VenueTable | None:
        q = select(VenueTable).where(VenueTable.id == table_id).options(selectinload(VenueTable.seats))
        return self.db.execute(q).scalar_one_or_none()

    def find_seat_by_id(self, seat_id: str) -> Seat | None:
        q = select(Seat).where(Seat.id == seat_id).options(selectinload(Seat.table))
        return self.db.execute(q).scalar_one_or_none()

    def find_seats_by_ids(self, seat_ids: Sequence[str]) -> list[Seat]:
        if not seat_ids:
            return []
        q = select(Seat).where(Seat.id.in_(list(seat_ids))).options(selectinload(Seat.table))
        return list(self.db.execute(q).scalars().all())

    def find_tables_for_venues(self, venue_ids: Sequence[str]) -> list[VenueTable]:
        if not venue_ids:
            return []
        q = (
            select(VenueTable)
            .where(VenueTable.venue_id.in_(list(venue_ids)))
            .options(selectinload(VenueTable.seats))
        )
        return list(self.db.execute(q).scalars().all())

    def find_overlapping_reservations(
        self, selector: ResourceSelector, start_at: datetime, end_at: datetime, now: datetime
    ) -> list[Reservation]:
        return list(self.db.execute(_overlap_query(selector, start_at, end_at, now)).scalars().all())

    def _lock_resources(self, selector: ResourceSelector) -> None:
        # Lock in id order so two writers never wait on each other crosswise.
        if selector.is_group:
            q = select(VenueTable.id).where(VenueTable.id == selector.table_id).with_for_update()
        else:
            q = select(Seat.id).where(Seat.id.in_(selector.seat_ids)).order_by(Seat.id).with_for_update()
        self.db.execute(q).all()

    def create_reservations(
        self,
        selector: ResourceSelector,
        records: Sequence[dict[str, Any]],
        now: datetime,
    ) -> list[Reservation]:
        if not records:
            return []
        start_at = records[0]["start_at"]
        end_at = records[0]["end_at"]
        db = self.db

        try:
            self._lock_resources(selector)
            clash = db.execute(_overlap_query(selector, start_at, end_at, now).limit(1)).first()
            if clash is not None:
                db.rollback()
                logger.info("reservation_conflict stage=recheck start_at=%s end_at=%s", start_at.isoformat(), end_at.isoformat())
                raise ConflictError(selector.conflict_message)

            rows = [Reservation(**record) for record in records]
            db.add_all(rows)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.info("reservation_conflict stage=commit start_at=%s end_at=%s", start_at.isoformat(), end_at.isoformat())
            raise ConflictError(selector.conflict_message) from exc

        return self._hydrate([r.id for r in rows])

    def activate_reservations(
        self, selector: ResourceSelector, reservations: Sequence[Reservation], now: datetime
    ) -> None:
        if not reservations:
            return
        booking_ids = {r.booking_id for r in reservations}
        start_at = reservations[0].start_at
        end_at = reservations[0].end_at
        db = self.db

        try:
            self._lock_resources(selector)
            current = db.execute(
                select(Reservation.status).where(Reservation.id.in_([r.id for r in reservations]))
            ).scalars().all()
            if STATUS_CANCELLED in current:
                db.rollback()
                raise ConflictError("This booking was cancelled.")

            clash = db.execute(
                _overlap_query(selector, start_at, end_at, now)
                .where(Reservation.booking_id.not_in(booking_ids))
                .limit(1)
            ).first()
            if clash is not None:
                db.rollback()
                logger.info("reservation_conflict stage=confirm booking_ids=%s", sorted(booking_ids))
                raise ConflictError("This booking's time slot is no longer available.")

            for reservation in reservations:
                reservation.status = STATUS_ACTIVE
                reservation.expires_at = None
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.info("reservation_conflict stage=commit booking_ids=%s", sorted(booking_ids))
            raise ConflictError("This booking's time slot is no longer available.") from exc

    def _hydrate(self, reservation_ids: list[str]) -> list[Reservation]:
        q = (
            select(Reservation)
            .where(Reservation.id.in_(reservation_ids))
            .options(
                selectinload(Reservation.venue),
                selectinload(Reservation.table),
                selectinload(Reservation.seat).selectinload(Seat.table),
            )
        )
        by_id = {r.id: r for r in self.db.execute(q).scalars().all()}
        return [by_id[rid] for rid in reservation_ids if rid in by_id]

    def find_live_reservations_for_venues(
        self, venue_ids: Sequence[str], start_at: datetime, end_at: datetime, now: datetime
    ) -> list[Reservation]:
        if not venue_ids:
            return []
        q = (
            select(Reservation)
            .where(Reservation.venue_id.in_(list(venue_ids)))
            .where(live_reservation_clause(now))
            .where(Reservation.start_at < end_at)
            .where(Reservation.end_at > start_at)
        )
        return list(self.db.execute(q).scalars().all())

    def count_user_reservations_between(
        self, user_id: str, start_at: datetime, end_at: datetime, now: datetime, venue_id: str | None = None
    ) -> int:
        q = (
            select(func.count(func.distinct(Reservation.booking_id)))
            .where(Reservation.user_id == user_id)
            .where(live_reservation_clause(now))
            .where(Reservation.start_at >= start_at)
            .where(Reservation.start_at < end_at)
        )
        if venue_id is not None:
            q = q.where(Reservation.venue_id == venue_id)
        return int(self.db.execute(q).scalar_one() or 0)

    def find_reservations_by_booking(self, booking_id: str) -> list[Reservation]:
        q = (
            select(Reservation)
            .where(Reservation.booking_id == booking_id)
            .options(selectinload(Reservation.venue), selectinload(Reservation.seat))
            .order_by(Reservation.seat_id, Reservation.id)
        )
        return list(self.db.execute(q).scalars().all())

    def find_expired_pending(self, now: datetime) -> list[Reservation]:
        q = (
            select(Reservation)
            .where(Reservation.status == STATUS_PENDING)
            .where(Reservation.expires_at.is_not(None))
            .where(Reservation.expires_at <= now)
        )
        return list(self.db.execute(q).scalars().all())

    def update_reservations_status(
        self, reservations: Sequence[Reservation], status: str, *, now: datetime, reason: str = ""
    ) -> None:
        for reservation in reservations:
            reservation.status = status
            if status == STATUS_CANCELLED:
                reservation.cancelled_at = now
                reservation.cancel_reason = reason[:255]
            else:
                reservation.expires_at = None
        self.db.commit()
