from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from seatbook.core.clock import Clock
from seatbook.core.deps import get_booking_policy, get_booking_store, get_clock, get_current_user_id, get_db
from seatbook.models.reservation import Reservation
from seatbook.schemas.booking import GroupBookingRequest, IndividualBookingRequest
from seatbook.schemas.pricing import PriceQuoteOut
from seatbook.schemas.reservation import BookingCancelRequest, BookingOut, ReservationOut
from seatbook.services.booking_context import build_booking_context
from seatbook.services.booking_guard import BookingPolicy
from seatbook.services.pricing_service import PricingResult, compute_booking_price
from seatbook.services.reservation_service import cancel_booking, write_reservation
from seatbook.stores.interfaces import BookingStore

router = APIRouter()


def booking_out(rows: list[Reservation], pricing: PricingResult | None = None) -> BookingOut:
    statuses = {r.status for r in rows}
    return BookingOut(
        booking_id=rows[0].booking_id,
        status=statuses.pop() if len(statuses) == 1 else "mixed",
        reservations=[ReservationOut.model_validate(r) for r in rows],
        pricing=PriceQuoteOut.from_result(pricing) if pricing is not None else None,
    )


@router.post("", response_model=BookingOut, status_code=201)
def create_booking(
    request: Request,
    payload: Union[IndividualBookingRequest, GroupBookingRequest] = Body(..., discriminator="mode"),
    db: Session = Depends(get_db),
    store: BookingStore = Depends(get_booking_store),
    policy: BookingPolicy = Depends(get_booking_policy),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
):
    context = build_booking_context(store, payload, user_id, clock=clock, policy=policy)
    pricing = compute_booking_price(context)
    rows = write_reservation(db, context, user_id, clock=clock, store=store, request=request)
    return booking_out(rows, pricing)


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel(
    booking_id: str,
    request: Request,
    payload: BookingCancelRequest | None = None,
    db: Session = Depends(get_db),
    store: BookingStore = Depends(get_booking_store),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
):
    reason = payload.reason if payload is not None else ""
    rows = cancel_booking(db, booking_id, clock=clock, user_id=user_id, reason=reason, store=store, request=request)
    return booking_out(rows)
