from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from seatbook.api.routes.reservations import booking_out
from seatbook.core.clock import Clock
from seatbook.core.deps import (
    get_booking_policy,
    get_booking_store,
    get_clock,
    get_current_user_id,
    get_db,
    require_payment_processor,
)
from seatbook.schemas.booking import GroupBookingRequest, IndividualBookingRequest
from seatbook.schemas.pricing import CheckoutOut, PaymentConfirmationIn, PriceQuoteOut
from seatbook.schemas.reservation import BookingOut
from seatbook.services.booking_context import build_booking_context
from seatbook.services.booking_guard import BookingPolicy
from seatbook.services.payment_service import create_checkout, mark_booking_paid
from seatbook.services.pricing_service import compute_booking_price
from seatbook.stores.interfaces import BookingStore

router = APIRouter()


@router.post("/quote", response_model=PriceQuoteOut)
def quote(
    payload: Union[IndividualBookingRequest, GroupBookingRequest] = Body(..., discriminator="mode"),
    store: BookingStore = Depends(get_booking_store),
    policy: BookingPolicy = Depends(get_booking_policy),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
):
    context = build_booking_context(store, payload, user_id, clock=clock, policy=policy)
    return PriceQuoteOut.from_result(compute_booking_price(context))


@router.post("/checkout", response_model=CheckoutOut, status_code=201)
def checkout(
    request: Request,
    payload: Union[IndividualBookingRequest, GroupBookingRequest] = Body(..., discriminator="mode"),
    db: Session = Depends(get_db),
    store: BookingStore = Depends(get_booking_store),
    policy: BookingPolicy = Depends(get_booking_policy),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
):
    context = build_booking_context(store, payload, user_id, clock=clock, policy=policy)
    rows, payment, pricing = create_checkout(db, context, user_id, clock=clock, store=store, request=request)
    return CheckoutOut(
        booking_id=rows[0].booking_id,
        payment_id=payment.id,
        amount_cents=payment.amount_cents,
        currency=payment.currency,
        expires_at=rows[0].expires_at,
        pricing=PriceQuoteOut.from_result(pricing),
    )


@router.post("/confirm", response_model=BookingOut, dependencies=[Depends(require_payment_processor)])
def confirm_payment(
    payload: PaymentConfirmationIn,
    db: Session = Depends(get_db),
    store: BookingStore = Depends(get_booking_store),
    clock: Clock = Depends(get_clock),
):
    rows = mark_booking_paid(
        db, payload.booking_id, processor_payment_id=payload.processor_payment_id, clock=clock, store=store
    )
    return booking_out(rows)
