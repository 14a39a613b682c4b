"""Booking fee math: service, processing and commission fees, and true totals."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bookings.models import Booking

TWO_PLACES = Decimal("0.01")
CENT_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0.00")


def round2(value: Decimal | int | str) -> Decimal:
    """Round a money value to cents using HALF_UP."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: object, default: Decimal | None = None) -> Decimal | None:
    """Convert arbitrary stored values to Decimal, falling back to default on failure."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return default


@dataclass(frozen=True)
class FeeRates:
    """Immutable snapshot of the fractional fee rates (0.12 == 12%)."""

    service_rate: Decimal
    partner_commission_rate: Decimal
    processing_rate: Decimal
    tax_rate: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "service_rate": str(self.service_rate),
            "partner_commission_rate": str(self.partner_commission_rate),
            "processing_rate": str(self.processing_rate),
            "tax_rate": str(self.tax_rate),
        }


@dataclass(frozen=True)
class FeeBreakdown:
    base_amount: Decimal
    service_fee: Decimal
    processing_fee: Decimal
    partner_commission: Decimal
    total_paid: Decimal
    partner_payout: Decimal

    @property
    def gross_application_fee(self) -> Decimal:
        """Everything the platform charges before the processor takes its cut."""
        return round2(self.service_fee + self.processing_fee + self.partner_commission)


def compute_fees(base_amount: Decimal, rates: FeeRates) -> FeeBreakdown:
    """
    Compute the fee breakdown for a base rental amount.

    Processing is charged on the post-service-fee subtotal and is a pure
    percentage. Every step is rounded to cents. A non-positive base amount
    yields an all-zero breakdown.
    """
    base = to_decimal(base_amount, ZERO)
    if base <= 0:
        return FeeBreakdown(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)

    base = round2(base)
    service_fee = round2(base * rates.service_rate)
    processing_fee = round2((base + service_fee) * rates.processing_rate)
    partner_commission = round2(base * rates.partner_commission_rate)
    return FeeBreakdown(
        base_amount=base,
        service_fee=service_fee,
        processing_fee=processing_fee,
        partner_commission=partner_commission,
        total_paid=round2(base + service_fee + processing_fee),
        partner_payout=round2(base - partner_commission),
    )


def resolve_true_total(
    *,
    recomputed_total: Decimal,
    total_paid: Decimal | None = None,
    price: Decimal | None = None,
) -> Decimal:
    """
    Pick the amount the guest really paid.

    Captured total wins. A captured price wins over the recomputation only
    when the two disagree by more than a cent.
    """
    if total_paid is not None:
        return round2(total_paid)
    if price is not None and abs(round2(price) - round2(recomputed_total)) > CENT_TOLERANCE:
        return round2(price)
    return round2(recomputed_total)


def backfill_booking_fees(booking: "Booking", rates: FeeRates) -> FeeBreakdown:
    """
    Fee breakdown for display, filling NULL fee columns from the given rates.

    Stored values are always kept as-is. The booking is not saved.
    """
    computed = compute_fees(booking.base_amount, rates)
    base = round2(to_decimal(booking.base_amount, ZERO))

    service_fee = to_decimal(booking.service_fee)
    processing_fee = to_decimal(booking.processing_fee)
    commission = to_decimal(booking.commission_amount)
    service_fee = computed.service_fee if service_fee is None else round2(service_fee)
    processing_fee = computed.processing_fee if processing_fee is None else round2(processing_fee)
    commission = computed.partner_commission if commission is None else round2(commission)

    total = resolve_true_total(
        recomputed_total=base + service_fee + processing_fee,
        total_paid=to_decimal(booking.total_paid),
        price=to_decimal(booking.price),
    )
    return FeeBreakdown(
        base_amount=base,
        service_fee=service_fee,
        processing_fee=processing_fee,
        partner_commission=commission,
        total_paid=total,
        partner_payout=round2(base - commission),
    )
