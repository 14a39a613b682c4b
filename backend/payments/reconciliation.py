"""
Net earnings reconciliation.

The platform's take-home on a booking ("net application fee") is the gross
application fee (service + processing + commission) minus what the payment
processor keeps. It comes from the processor ledger when that is readable and
from ``estimate_processor_fee`` otherwise; ``NetFee`` records which.

Refund-aware rule: a full refund forfeits everything (net 0); partial and
50/50 refunds leave the platform's fee untouched, so net is computed from the
original charge as if nothing had been refunded.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Literal

from payments.fees import CENT_TOLERANCE, ZERO, FeeBreakdown, round2, to_decimal
from payments.processor_fees import estimate_processor_fee

if TYPE_CHECKING:
    from bookings.models import Booking

RefundClass = Literal["none", "full", "partial", "split_50_50"]
Confidence = Literal["authoritative", "estimated"]


@dataclass(frozen=True)
class ProcessorLedgerDetail:
    """Processor-reported figures for one charge, in major currency units."""

    gross_fee: Decimal
    processor_fee: Decimal
    net_fee: Decimal
    transfer_amount: Decimal | None = None


@dataclass(frozen=True)
class NetFee:
    amount: Decimal
    confidence: Confidence
    gross_application_fee: Decimal

    @classmethod
    def authoritative(cls, amount: Decimal, gross: Decimal) -> "NetFee":
        return cls(round2(amount), "authoritative", round2(gross))

    @classmethod
    def estimated(cls, amount: Decimal, gross: Decimal) -> "NetFee":
        return cls(round2(amount), "estimated", round2(gross))

    @property
    def is_estimated(self) -> bool:
        return self.confidence == "estimated"


def _stored_total(booking: "Booking") -> Decimal:
    total = to_decimal(booking.total_paid)
    if total is not None:
        return total
    parts = (booking.base_amount, booking.service_fee, booking.processing_fee)
    return sum((to_decimal(part, ZERO) for part in parts), ZERO)


def classify_refund(booking: "Booking", total_paid: Decimal | None = None) -> RefundClass:
    """
    Work out which kind of refund a stored booking went through.

    - full: refunded and the refund matches the total within a cent, or the
      booking was cancelled.
    - split_50_50: not full, both refund columns explicitly written (or a
      transfer reversal exists) and together they are below the total.
    - partial: any other refunded booking.
    """
    if booking.payment_status != "refunded":
        return "none"

    total = to_decimal(total_paid) if total_paid is not None else _stored_total(booking)
    refund = to_decimal(booking.refund_amount, ZERO)
    reversal = to_decimal(booking.transfer_reversal_amount, ZERO)

    refund_matches_total = refund > 0 and abs(refund - total) < CENT_TOLERANCE
    if refund_matches_total or booking.status == "cancelled":
        return "full"

    both_written = (
        booking.refund_amount is not None and booking.transfer_reversal_amount is not None
    )
    has_reversal = bool(booking.processor_transfer_reversal_reference)
    if (both_written or has_reversal) and refund + reversal < total:
        return "split_50_50"
    return "partial"


def _estimated_net(breakdown: FeeBreakdown, is_international_card: bool) -> NetFee:
    gross = breakdown.gross_application_fee
    total = breakdown.total_paid
    if gross <= 0:
        return NetFee.estimated(ZERO, ZERO)
    if total > 0:
        processor_fee = estimate_processor_fee(total, is_international_card)
    else:
        # No usable total; estimate on the fee itself at international rates.
        processor_fee = estimate_processor_fee(gross, True)
    return NetFee.estimated(max(ZERO, gross - processor_fee), gross)


def reconcile_net_application_fee(
    breakdown: FeeBreakdown,
    *,
    refund_class: RefundClass = "none",
    ledger: ProcessorLedgerDetail | None = None,
    is_international_card: bool = False,
) -> NetFee:
    """
    Net application fee for one booking.

    ``breakdown`` must describe the original charge (pre-refund totals).
    """
    if refund_class == "full":
        return NetFee.authoritative(ZERO, ZERO)

    if ledger is not None:
        gross = round2(ledger.gross_fee)
        if gross <= 0:
            return NetFee.authoritative(ZERO, ZERO)
        return NetFee.authoritative(max(ZERO, ledger.net_fee), gross)

    return _estimated_net(breakdown, is_international_card)


def host_net_share(net_fee: NetFee, partner_commission: Decimal) -> Decimal:
    """Commission's proportional slice of the net fee: net * commission / gross."""
    gross = net_fee.gross_application_fee
    if gross <= 0:
        return ZERO
    commission = to_decimal(partner_commission, ZERO)
    return round2(net_fee.amount * commission / gross)
