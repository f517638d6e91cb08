from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from seatbook.core.clock import Clock
from seatbook.core.config import Settings, get_settings
from seatbook.core.errors import InvalidInputError
from seatbook.models.payment import Payment
from seatbook.models.reservation import STATUS_PENDING, Reservation
from seatbook.services.booking_context import BookingContext
from seatbook.services.pricing_service import PricingResult, compute_booking_price
from seatbook.services.reservation_service import confirm_pending_booking, write_reservation
from seatbook.stores.interfaces import BookingStore

logger = logging.getLogger(__name__)


def create_checkout(
    db: Session,
    context: BookingContext,
    user_id: str,
    *,
    clock: Clock,
    settings: Settings | None = None,
    store: BookingStore | None = None,
    request: Request | None = None,
) -> tuple[list[Reservation], Payment, PricingResult]:
    settings = settings or get_settings()
    pricing = compute_booking_price(context, settings)
    if pricing.total_charge_cents <= 0:
        raise InvalidInputError("Free bookings do not need a checkout.")

    rows = write_reservation(
        db, context, user_id, clock=clock, status=STATUS_PENDING, store=store, request=request
    )
    primary = rows[0]
    payment = Payment(
        reservation_id=primary.id,
        booking_id=primary.booking_id,
        venue_id=context.venue_id,
        user_id=user_id,
        amount_cents=pricing.total_charge_cents,
        currency=pricing.currency,
        application_fee_cents=pricing.application_fee_cents,
        processing_fee_cents=pricing.processing_fee_cents,
        payment_account_id=context.payment_account_id,
        status="PENDING",
    )
    db.add(payment)
    db.commit()
    logger.info(
        "checkout_created booking_id=%s amount_cents=%d application_fee_cents=%d",
        primary.booking_id,
        pricing.total_charge_cents,
        pricing.application_fee_cents,
    )
    return rows, payment, pricing


def mark_booking_paid(
    db: Session,
    booking_id: str,
    *,
    processor_payment_id: str,
    clock: Clock,
    store: BookingStore | None = None,
) -> list[Reservation]:
    """The processor reported a successful charge: activate the held booking and its payment record.

    Only the processor callback calls this; buyers cannot confirm their own checkout.
    """
    rows = confirm_pending_booking(db, booking_id, clock=clock, store=store)
    payments = db.execute(select(Payment).where(Payment.booking_id == booking_id)).scalars().all()
    for payment in payments:
        payment.status = "PAID"
        payment.processor_payment_id = processor_payment_id
    if payments:
        db.commit()
    logger.info("payment_confirmed booking_id=%s payments=%d", booking_id, len(payments))
    return rows
