"""
Commission reporting over a set of bookings.

Fully refunded bookings are left out of every total. Partial and 50/50
refunds count at their original, pre-refund figures because the platform
keeps its fee on those. Host payouts are only summed when a processor payout
that covers the booking's transfer has actually been paid to the host.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable

from django.utils import timezone

from bookings.models import Booking
from core.errors import AggregationPartialFailure, ProcessorUnavailable
from core.fee_settings import get_active_rates
from payments.fees import ZERO, FeeRates, backfill_booking_fees, round2, to_decimal
from payments.reconciliation import (
    NetFee,
    ProcessorLedgerDetail,
    classify_refund,
    host_net_share,
    reconcile_net_application_fee,
)
from payments.stripe_api import ProcessorPayout, get_processor

logger = logging.getLogger(__name__)

PAYOUT_AMOUNT_TOLERANCE = Decimal("1.00")

PAYOUT_PAID = "paid"
PAYOUT_PENDING = "pending"
PAYOUT_UNAVAILABLE = "unavailable"

_REFUND_LABELS = {
    "split_50_50": "50/50 Refund",
    "partial": "Partial Refund",
    "full": "Full Refund",
}
_PAYMENT_LABELS = {
    Booking.PaymentStatus.PAID: "Successful",
    Booking.PaymentStatus.FAILED: "Failed",
    Booking.PaymentStatus.PENDING: "Pending",
}


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return round2(part / whole * 100)


def export_status_label(payment_status: str, refund_class: str) -> str:
    if payment_status == Booking.PaymentStatus.REFUNDED:
        return _REFUND_LABELS.get(refund_class, "Full Refund")
    return _PAYMENT_LABELS.get(payment_status, (payment_status or "pending").capitalize())


@dataclass
class CommissionRow:
    booking_id: int
    reference: str
    host_id: int
    host_name: str
    space_name: str
    created_at: datetime
    payment_status: str
    status: str
    refund_class: str
    base_amount: Decimal
    service_fee: Decimal
    processing_fee: Decimal
    commission: Decimal
    total_paid: Decimal
    gross_application_fee: Decimal
    net_fee: NetFee
    commission_net_share: Decimal
    expected_host_payout: Decimal
    host_payout: Decimal | None
    host_payout_status: str

    @property
    def excluded(self) -> bool:
        return self.refund_class == "full"

    @property
    def platform_earnings(self) -> Decimal:
        return self.net_fee.amount

    @property
    def commission_rate(self) -> Decimal:
        return _percent(self.commission, self.base_amount)

    @property
    def status_label(self) -> str:
        return export_status_label(self.payment_status, self.refund_class)

    def as_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "reference": self.reference,
            "host_id": self.host_id,
            "host_name": self.host_name,
            "space_name": self.space_name,
            "created_at": self.created_at.isoformat(),
            "payment_status": self.payment_status,
            "status": self.status,
            "refund_class": self.refund_class,
            "status_label": self.status_label,
            "base_amount": str(self.base_amount),
            "service_fee": str(self.service_fee),
            "processing_fee": str(self.processing_fee),
            "commission": str(self.commission),
            "commission_rate": str(self.commission_rate),
            "total_paid": str(self.total_paid),
            "gross_application_fee": str(self.gross_application_fee),
            "net_application_fee": str(self.net_fee.amount),
            "net_fee_confidence": self.net_fee.confidence,
            "platform_earnings": str(self.platform_earnings),
            "commission_net_share": str(self.commission_net_share),
            "expected_host_payout": str(self.expected_host_payout),
            "host_payout": None if self.host_payout is None else str(self.host_payout),
            "host_payout_status": self.host_payout_status,
            "excluded_from_totals": self.excluded,
        }


@dataclass
class CommissionSummary:
    total_revenue: Decimal = ZERO
    total_commission: Decimal = ZERO
    total_platform_earnings: Decimal = ZERO
    total_host_payouts: Decimal = ZERO
    average_commission_rate: Decimal = ZERO
    total_transactions: int = 0
    estimated_transactions: int = 0
    excluded_full_refunds: int = 0

    def as_dict(self) -> dict:
        return {
            "total_revenue": str(self.total_revenue),
            "total_commission": str(self.total_commission),
            "total_platform_earnings": str(self.total_platform_earnings),
            "total_host_payouts": str(self.total_host_payouts),
            "average_commission_rate": str(self.average_commission_rate),
            "total_transactions": self.total_transactions,
            "estimated_transactions": self.estimated_transactions,
            "excluded_full_refunds": self.excluded_full_refunds,
        }


@dataclass
class CommissionReport:
    rows: list[CommissionRow]
    summary: CommissionSummary
    monthly: list[dict] = field(default_factory=list)
    hosts: list[dict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def summarize(rows: Iterable[CommissionRow]) -> CommissionSummary:
    summary = CommissionSummary()
    for row in rows:
        if row.excluded:
            summary.excluded_full_refunds += 1
            continue
        summary.total_transactions += 1
        summary.total_revenue += row.base_amount
        summary.total_commission += row.commission
        summary.total_platform_earnings += row.platform_earnings
        if row.host_payout_status == PAYOUT_PAID and row.host_payout is not None:
            summary.total_host_payouts += row.host_payout
        if row.net_fee.is_estimated:
            summary.estimated_transactions += 1
    summary.total_revenue = round2(summary.total_revenue)
    summary.total_commission = round2(summary.total_commission)
    summary.total_platform_earnings = round2(summary.total_platform_earnings)
    summary.total_host_payouts = round2(summary.total_host_payouts)
    summary.average_commission_rate = _percent(summary.total_commission, summary.total_revenue)
    return summary


def monthly_breakdown(rows: Iterable[CommissionRow]) -> list[dict]:
    months: "OrderedDict[str, dict]" = OrderedDict()
    for row in sorted(rows, key=lambda r: r.created_at):
        if row.excluded:
            continue
        key = timezone.localtime(row.created_at).strftime("%Y-%m")
        data = months.setdefault(
            key,
            {
                "revenue": ZERO,
                "commission": ZERO,
                "platform_earnings": ZERO,
                "host_payouts": ZERO,
                "transactions": 0,
            },
        )
        data["revenue"] += row.base_amount
        data["commission"] += row.commission
        data["platform_earnings"] += row.platform_earnings
        if row.host_payout_status == PAYOUT_PAID and row.host_payout is not None:
            data["host_payouts"] += row.host_payout
        data["transactions"] += 1

    return [
        {
            "month": month,
            "revenue": str(round2(data["revenue"])),
            "platform_earnings": str(round2(data["platform_earnings"])),
            "host_payouts": str(round2(data["host_payouts"])),
            "transactions": data["transactions"],
            "average_commission_rate": str(_percent(data["commission"], data["revenue"])),
        }
        for month, data in months.items()
    ]


def host_breakdown(rows: Iterable[CommissionRow]) -> list[dict]:
    hosts: dict[int, dict] = {}
    for row in rows:
        if row.excluded:
            continue
        data = hosts.setdefault(
            row.host_id,
            {
                "host_id": row.host_id,
                "host_name": row.host_name,
                "total_revenue": ZERO,
                "total_commission": ZERO,
                "total_payout": ZERO,
                "booking_count": 0,
            },
        )
        data["total_revenue"] += row.base_amount
        data["total_commission"] += row.commission
        if row.host_payout_status == PAYOUT_PAID and row.host_payout is not None:
            data["total_payout"] += row.host_payout
        data["booking_count"] += 1

    ordered = sorted(hosts.values(), key=lambda item: item["total_revenue"], reverse=True)
    for item in ordered:
        for key in ("total_revenue", "total_commission", "total_payout"):
            item[key] = str(round2(item[key]))
    return ordered


def match_host_payout(
    payouts: list[ProcessorPayout], *, transfer_amount: Decimal, booked_at: datetime
) -> ProcessorPayout | None:
    """First paid payout created after the booking that covers its transfer."""
    for payout in payouts:
        if payout.status != PAYOUT_PAID or payout.created_at < booked_at:
            continue
        if abs(payout.amount - transfer_amount) < PAYOUT_AMOUNT_TOLERANCE:
            return payout
        if payout.amount >= transfer_amount:
            return payout
    return None


class CommissionAggregator:
    """
    Read-only projection of bookings into commission report rows.

    ``processor`` is only asked for charge ledger detail when the booking has
    no stored authoritative net fee, and for payouts of hosts that have a
    Connect account. Failed lookups fall back to estimates for that row.
    """

    def __init__(self, *, processor=None, rates: FeeRates | None = None):
        self._processor = processor
        self._rates = rates
        self._payouts: dict[str, list[ProcessorPayout] | None] = {}
        self.warnings: list[str] = []

    @property
    def processor(self):
        if self._processor is None:
            self._processor = get_processor()
        return self._processor

    @property
    def rates(self) -> FeeRates:
        if self._rates is None:
            self._rates = get_active_rates()
        return self._rates

    def _partial_failure(self, booking: Booking, what: str, exc: Exception) -> None:
        error = AggregationPartialFailure(f"{what} unavailable for booking {booking.reference}")
        logger.warning(
            "commission: %s, using estimates",
            error,
            exc_info=exc,
            extra={"booking_id": booking.id},
        )
        self.warnings.append(str(error))

    def _ledger_detail(self, booking: Booking) -> ProcessorLedgerDetail | None:
        if not booking.processor_payment_reference:
            return None
        try:
            return self.processor.get_charge_ledger_detail(booking.processor_payment_reference)
        except ProcessorUnavailable as exc:
            self._partial_failure(booking, "Processor ledger", exc)
            return None

    def _net_fee(self, booking: Booking, breakdown, refund_class: str):
        stored = to_decimal(booking.net_application_fee)
        if (
            refund_class != "full"
            and stored is not None
            and booking.net_fee_confidence == Booking.NetFeeConfidence.AUTHORITATIVE
        ):
            return NetFee.authoritative(stored, breakdown.gross_application_fee), None
        ledger = None if refund_class == "full" else self._ledger_detail(booking)
        net = reconcile_net_application_fee(
            breakdown,
            refund_class=refund_class,
            ledger=ledger,
            is_international_card=booking.is_international_card,
        )
        return net, ledger

    def _account_payouts(
        self, booking: Booking, start: date, end: date
    ) -> list[ProcessorPayout] | None:
        account = getattr(booking.host, "payout_account", None)
        account_ref = account.stripe_account_id if account else ""
        if not account_ref:
            return None
        if account_ref not in self._payouts:
            try:
                self._payouts[account_ref] = self.processor.list_account_payouts(
                    account_ref, start, end
                )
            except ProcessorUnavailable as exc:
                self._partial_failure(booking, "Host payouts", exc)
                self._payouts[account_ref] = None
        return self._payouts[account_ref]

    def build_row(self, booking: Booking, *, payout_window: tuple[date, date]) -> CommissionRow:
        breakdown = backfill_booking_fees(booking, self.rates)
        refund_class = classify_refund(booking, breakdown.total_paid)
        net, ledger = self._net_fee(booking, breakdown, refund_class)

        expected_payout = breakdown.partner_payout
        transfer_amount = ledger.transfer_amount if ledger and ledger.transfer_amount else None
        payouts = self._account_payouts(booking, *payout_window)
        host_payout = None
        if payouts is not None:
            matched = match_host_payout(
                payouts,
                transfer_amount=transfer_amount or expected_payout,
                booked_at=booking.created_at,
            )
            if matched is not None:
                payout_status = PAYOUT_PAID
                host_payout = transfer_amount or expected_payout
            else:
                payout_status = PAYOUT_PENDING
        elif transfer_amount is not None or booking.processor_transfer_reference:
            payout_status = PAYOUT_PENDING
        else:
            payout_status = PAYOUT_UNAVAILABLE

        return CommissionRow(
            booking_id=booking.id,
            reference=booking.reference,
            host_id=booking.host_id,
            host_name=booking.host.display_name(),
            space_name=booking.space.name,
            created_at=booking.created_at,
            payment_status=booking.payment_status,
            status=booking.status,
            refund_class=refund_class,
            base_amount=breakdown.base_amount,
            service_fee=breakdown.service_fee,
            processing_fee=breakdown.processing_fee,
            commission=breakdown.partner_commission,
            total_paid=breakdown.total_paid,
            gross_application_fee=breakdown.gross_application_fee,
            net_fee=net,
            commission_net_share=host_net_share(net, breakdown.partner_commission),
            expected_host_payout=expected_payout,
            host_payout=host_payout,
            host_payout_status=payout_status,
        )

    def build_rows(
        self, bookings: Iterable[Booking], *, start: date, end: date
    ) -> list[CommissionRow]:
        return [self.build_row(booking, payout_window=(start, end)) for booking in bookings]

    def build_report(
        self, *, start: date | None = None, end: date | None = None
    ) -> CommissionReport:
        bookings = list(report_queryset(start=start, end=end))
        payout_start = start or min(
            (b.created_at.date() for b in bookings), default=timezone.localdate()
        )
        payout_end = timezone.localdate()
        rows = self.build_rows(bookings, start=payout_start, end=payout_end)
        return CommissionReport(
            rows=rows,
            summary=summarize(rows),
            monthly=monthly_breakdown(rows),
            hosts=host_breakdown(rows),
            warnings=list(self.warnings),
        )


def report_queryset(*, start: date | None = None, end: date | None = None):
    """Bookings created within the inclusive date range, newest first."""
    qs = Booking.objects.select_related("space", "host", "host__payout_account").order_by(
        "-created_at", "-id"
    )
    tz = timezone.get_current_timezone()
    if start:
        qs = qs.filter(created_at__gte=timezone.make_aware(datetime.combine(start, time.min), tz))
    if end:
        qs = qs.filter(created_at__lte=timezone.make_aware(datetime.combine(end, time.max), tz))
    return qs
