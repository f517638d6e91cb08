from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from seatbook.core.clock import Clock
from seatbook.core.deps import get_booking_store, get_clock
from seatbook.core.errors import NotFoundError
from seatbook.schemas.availability import OpenStatusOut, VenueLabelsOut, WeeklyHoursOut
from seatbook.services.availability_service import venue_availability_labels
from seatbook.services.booking_guard import get_venue_bookability
from seatbook.services.hours_service import format_weekly_hours, get_canonical_hours, get_open_status
from seatbook.stores.interfaces import BookingStore

router = APIRouter()

MAX_LABEL_VENUES = 100


@router.get("/labels", response_model=VenueLabelsOut)
def availability_labels(
    venue_ids: list[str] = Query(default=[]),
    store: BookingStore = Depends(get_booking_store),
    clock: Clock = Depends(get_clock),
):
    # accept both ?venue_ids=a&venue_ids=b and ?venue_ids=a,b
    ids = [v.strip() for raw in venue_ids for v in raw.split(",") if v.strip()]
    ids = list(dict.fromkeys(ids))[:MAX_LABEL_VENUES]
    return VenueLabelsOut(labels=venue_availability_labels(store, ids, clock))


@router.get("/{venue_id}/open-status", response_model=OpenStatusOut)
def open_status(venue_id: str, store: BookingStore = Depends(get_booking_store), clock: Clock = Depends(get_clock)):
    venue = store.find_venue_by_id(venue_id)
    canonical = get_canonical_hours(store, venue_id, clock) if venue is not None else None
    if venue is None or canonical is None:
        raise NotFoundError("Venue not found.", details={"venue_id": venue_id})

    status = get_open_status(canonical, clock.now())
    bookability = get_venue_bookability(venue)
    return OpenStatusOut(
        venue_id=venue_id,
        timezone=canonical.timezone,
        is_open=status.is_open,
        status=status.status,
        today_label=status.today_label,
        today_hours_text=status.today_hours_text,
        next_open_at=status.next_open_at,
        diagnostic_message=status.diagnostic_message,
        can_book=bookability.can_book,
        booking_disabled_reason=bookability.reason,
        pause_message=bookability.pause_message,
    )


@router.get("/{venue_id}/hours", response_model=WeeklyHoursOut)
def weekly_hours(venue_id: str, store: BookingStore = Depends(get_booking_store), clock: Clock = Depends(get_clock)):
    canonical = get_canonical_hours(store, venue_id, clock)
    if canonical is None:
        raise NotFoundError("Venue not found.", details={"venue_id": venue_id})
    return WeeklyHoursOut(venue_id=venue_id, timezone=canonical.timezone, lines=format_weekly_hours(canonical))
