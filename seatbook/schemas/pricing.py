from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from seatbook.services.pricing_service import PricingResult


class PriceQuoteOut(BaseModel):
    subtotal_cents: int
    processing_fee_cents: int
    total_charge_cents: int
    commission_cents: int
    application_fee_cents: int
    venue_payout_cents: int
    rate_per_hour_cents: int
    hours: float
    seat_count_for_average: int
    average_seat_price_cents: int
    currency: str
    payout_policy: str

    @classmethod
    def from_result(cls, result: PricingResult) -> "PriceQuoteOut":
        return cls(
            subtotal_cents=result.subtotal_cents,
            processing_fee_cents=result.processing_fee_cents,
            total_charge_cents=result.total_charge_cents,
            commission_cents=result.commission_cents,
            application_fee_cents=result.application_fee_cents,
            venue_payout_cents=result.venue_payout_cents,
            rate_per_hour_cents=result.rate_per_hour_cents,
            hours=float(result.hours),
            seat_count_for_average=result.seat_count_for_average,
            average_seat_price_cents=result.average_seat_price_cents,
            currency=result.currency,
            payout_policy=result.payout_policy,
        )


class CheckoutOut(BaseModel):
    booking_id: str
    payment_id: str
    amount_cents: int
    currency: str
    expires_at: datetime | None
    pricing: PriceQuoteOut


class PaymentConfirmationIn(BaseModel):
    booking_id: str = Field(min_length=1, max_length=36)
    processor_payment_id: str = Field(min_length=1, max_length=255)
