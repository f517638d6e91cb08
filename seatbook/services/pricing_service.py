from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from seatbook.core.config import Settings, get_settings
from seatbook.services.booking_context import BookingContext

POLICY_VENUE_NETS_SHARE = "venue_nets_share"
POLICY_PROCESSOR_FEE_FROM_VENUE = "processor_fee_from_venue"
PAYOUT_POLICIES = (POLICY_VENUE_NETS_SHARE, POLICY_PROCESSOR_FEE_FROM_VENUE)


@dataclass(frozen=True)
class PricingResult:
    subtotal_cents: int
    processing_fee_cents: int
    total_charge_cents: int
    commission_cents: int
    application_fee_cents: int
    venue_payout_cents: int
    rate_per_hour_cents: int
    hours: Decimal
    seat_count_for_average: int
    currency: str = "usd"
    payout_policy: str = POLICY_VENUE_NETS_SHARE

    @property
    def average_seat_price_cents(self) -> int:
        if self.seat_count_for_average <= 0:
            return self.total_charge_cents
        return _round_half_up(Decimal(self.total_charge_cents) / self.seat_count_for_average)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_subtotal_cents(rate_per_hour_cents: int, hours: Decimal) -> int:
    return max(0, _round_half_up(Decimal(rate_per_hour_cents) * hours))


def compute_total_with_fee(subtotal_cents: int, percent: float, fixed_cents: int) -> int:
    """Smallest total T with T - (T * percent + fixed) >= subtotal."""
    if subtotal_cents <= 0:
        return 0
    pct = Decimal(str(percent))
    if not Decimal(0) <= pct < Decimal(1):
        raise ValueError(f"processing fee percent must be in [0, 1), got {percent}")
    total = (Decimal(subtotal_cents) + Decimal(fixed_cents)) / (Decimal(1) - pct)
    return int(total.to_integral_value(rounding=ROUND_CEILING))


def split_payout(
    subtotal_cents: int, total_cents: int, commission_cents: int, policy: str
) -> tuple[int, int]:
    """Return (application_fee_cents, venue_payout_cents) for a payout policy."""
    processing_fee = total_cents - subtotal_cents
    if policy == POLICY_VENUE_NETS_SHARE:
        application_fee = min(total_cents, commission_cents + processing_fee)
        return application_fee, total_cents - application_fee
    if policy == POLICY_PROCESSOR_FEE_FROM_VENUE:
        application_fee = min(total_cents, commission_cents)
        return application_fee, max(0, total_cents - commission_cents - processing_fee)
    raise ValueError(f"unknown payout policy {policy!r}")


def compute_price(
    rate_per_hour_cents: int,
    hours: Decimal,
    seat_count_for_average: int,
    settings: Settings | None = None,
) -> PricingResult:
    settings = settings or get_settings()
    subtotal = compute_subtotal_cents(rate_per_hour_cents, hours)
    total = compute_total_with_fee(subtotal, settings.processing_fee_percent, settings.processing_fee_fixed_cents)
    commission = min(total, _round_half_up(Decimal(subtotal) * Decimal(str(settings.commission_rate))))
    application_fee, venue_payout = split_payout(subtotal, total, commission, settings.payout_policy)
    return PricingResult(
        subtotal_cents=subtotal,
        processing_fee_cents=total - subtotal,
        total_charge_cents=total,
        commission_cents=commission,
        application_fee_cents=application_fee,
        venue_payout_cents=venue_payout,
        rate_per_hour_cents=rate_per_hour_cents,
        hours=hours,
        seat_count_for_average=seat_count_for_average,
        currency=settings.currency,
        payout_policy=settings.payout_policy,
    )


def compute_booking_price(context: BookingContext, settings: Settings | None = None) -> PricingResult:
    seat_count_for_average = context.table_seat_count if context.is_group else len(context.seat_ids)
    return compute_price(context.rate_per_hour_cents, context.duration_hours, seat_count_for_average, settings)
