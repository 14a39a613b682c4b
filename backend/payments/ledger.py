from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from django.contrib.auth import get_user_model

from payments.fees import ZERO, round2, to_decimal
from payments.models import EarningsLedgerEntry

if TYPE_CHECKING:
    from bookings.models import Booking
    from payments.reconciliation import RefundClass

User = get_user_model()
TWO_PLACES = Decimal("0.01")


def append_earnings_entry(
    *,
    host: User,
    booking: "Booking",
    amount: Decimal,
    kind: str = EarningsLedgerEntry.Kind.EARNING,
    status: str = EarningsLedgerEntry.Status.PENDING,
    fee_amount: Decimal = ZERO,
    net_amount: Optional[Decimal] = None,
    description: str = "",
    reverses: Optional[EarningsLedgerEntry] = None,
) -> EarningsLedgerEntry:
    """Create and return a ledger row. Rows are never updated afterwards."""
    return EarningsLedgerEntry.objects.create(
        host=host,
        booking=booking,
        kind=kind,
        status=status,
        amount=round2(amount),
        fee_amount=round2(fee_amount),
        net_amount=round2(amount if net_amount is None else net_amount),
        currency=booking.currency,
        description=description,
        reverses=reverses,
    )


def list_earnings(booking: "Booking") -> list[EarningsLedgerEntry]:
    return list(EarningsLedgerEntry.objects.filter(booking=booking).order_by("created_at", "id"))


def _entry_value(entry: EarningsLedgerEntry) -> Decimal:
    net = to_decimal(entry.net_amount)
    if net is None or net == 0:
        net = to_decimal(entry.amount, ZERO)
    return abs(net)


def compensating_amount(
    entry: EarningsLedgerEntry,
    *,
    refund_class: "RefundClass",
    refund_amount: Decimal,
    host_refund_amount: Decimal,
    total_paid: Decimal,
) -> Decimal:
    """
    Negative amount that reverses the host's share of a refund for one entry.

    Full refunds reverse the entry, partial refunds reverse refund/total of it,
    50/50 splits reverse exactly the host share.
    """
    if refund_class == "full":
        return -_entry_value(entry)
    if refund_class == "split_50_50":
        return -abs(round2(host_refund_amount))
    if total_paid <= 0:
        return ZERO
    return -abs(round2(refund_amount / total_paid * _entry_value(entry)))


def record_compensating_entries(
    booking: "Booking",
    *,
    refund_class: "RefundClass",
    refund_amount: Decimal,
    host_refund_amount: Decimal,
    total_paid: Decimal,
) -> list[EarningsLedgerEntry]:
    """
    Append the negative entries for a refund. Returns the new rows.

    Only original earning rows are reversed. A 50/50 host share is reversed
    once per booking, against the first earning row.
    """
    earnings = [
        entry
        for entry in list_earnings(booking)
        if entry.kind == EarningsLedgerEntry.Kind.EARNING and _entry_value(entry) > 0
    ]
    if refund_class == "split_50_50":
        earnings = earnings[:1]
        description = f"50/50 split refund - host portion reversal for booking {booking.reference}"
    else:
        description = f"Refund reversal for booking {booking.reference}"

    created: list[EarningsLedgerEntry] = []
    for entry in earnings:
        amount = compensating_amount(
            entry,
            refund_class=refund_class,
            refund_amount=refund_amount,
            host_refund_amount=host_refund_amount,
            total_paid=total_paid,
        )
        if amount >= 0:
            continue
        created.append(
            append_earnings_entry(
                host=entry.host,
                booking=booking,
                amount=amount,
                kind=EarningsLedgerEntry.Kind.REFUND_REVERSAL,
                status=EarningsLedgerEntry.Status.REFUNDED,
                net_amount=amount,
                description=description,
                reverses=entry,
            )
        )
    return created


def compute_host_balances(host: User) -> dict[str, str]:
    """Lifetime earnings, reversals and net owed for a host."""
    lifetime_gross = Decimal("0.00")
    lifetime_reversals = Decimal("0.00")
    for entry in EarningsLedgerEntry.objects.filter(host=host):
        amount = Decimal(entry.net_amount)
        if entry.kind == EarningsLedgerEntry.Kind.EARNING and amount > 0:
            lifetime_gross += amount
        elif entry.kind == EarningsLedgerEntry.Kind.REFUND_REVERSAL:
            lifetime_reversals += amount

    def _format(value: Decimal) -> str:
        return f"{value.quantize(TWO_PLACES)}"

    return {
        "lifetime_gross_earnings": _format(lifetime_gross),
        "lifetime_reversals": _format(lifetime_reversals),
        "net_earnings": _format(lifetime_gross + lifetime_reversals),
    }
