from __future__ import annotations

import logging

from celery import shared_task
from django.db import transaction

from bookings.models import Booking
from core.errors import ProcessorUnavailable
from core.fee_settings import get_active_rates
from operator_bookings.models import BookingEvent
from operator_bookings.services import record_booking_event
from payments.fees import CENT_TOLERANCE, FeeRates, backfill_booking_fees, to_decimal
from payments.reconciliation import (
    classify_refund,
    host_net_share,
    reconcile_net_application_fee,
)
from payments.stripe_api import get_processor

logger = logging.getLogger(__name__)


def reconcile_booking(booking: Booking, *, processor, rates: FeeRates) -> dict:
    """
    Recompute and persist the net application fee of one booking.

    Returns a small outcome dict: ``updated``, ``estimated`` and, when the
    stored value moved by more than a cent, a ``discrepancy`` entry.
    """
    breakdown = backfill_booking_fees(booking, rates)
    refund_class = classify_refund(booking, breakdown.total_paid)

    ledger = None
    if refund_class != "full":
        try:
            ledger = processor.get_charge_ledger_detail(booking.processor_payment_reference)
        except ProcessorUnavailable as exc:
            logger.warning(
                "reconcile: ledger lookup failed, using estimate",
                exc_info=exc,
                extra={"booking_id": booking.id},
            )

    stored_net = to_decimal(booking.net_application_fee)
    stored_confidence = booking.net_fee_confidence
    if (
        ledger is None
        and refund_class != "full"
        and stored_net is not None
        and stored_confidence == Booking.NetFeeConfidence.AUTHORITATIVE
    ):
        # Never downgrade a processor-confirmed figure to an estimate.
        return {"updated": False, "estimated": False, "discrepancy": None}

    net = reconcile_net_application_fee(
        breakdown,
        refund_class=refund_class,
        ledger=ledger,
        is_international_card=booking.is_international_card,
    )
    platform_earnings = host_net_share(net, breakdown.partner_commission)
    outcome = {"updated": False, "estimated": net.is_estimated, "discrepancy": None}

    unchanged = (
        stored_net == net.amount
        and to_decimal(booking.platform_earnings) == platform_earnings
        and stored_confidence == net.confidence
    )
    if unchanged:
        return outcome

    moved = stored_net is not None and abs(stored_net - net.amount) > CENT_TOLERANCE
    with transaction.atomic():
        booking.net_application_fee = net.amount
        booking.platform_earnings = platform_earnings
        booking.net_fee_confidence = net.confidence
        booking.save(
            update_fields=[
                "net_application_fee",
                "platform_earnings",
                "net_fee_confidence",
                "updated_at",
            ]
        )
        if moved:
            record_booking_event(
                booking,
                type_value=BookingEvent.Type.FEE_RECONCILIATION,
                payload={
                    "old_value": str(stored_net),
                    "new_value": str(net.amount),
                    "reason": f"Net application fee reconciled ({net.confidence})",
                    "notes": "",
                },
                actor=None,
            )

    outcome["updated"] = True
    if moved:
        outcome["discrepancy"] = {
            "booking_id": booking.id,
            "reference": booking.reference,
            "stored": str(stored_net),
            "reconciled": str(net.amount),
            "difference": str(net.amount - stored_net),
            "confidence": net.confidence,
        }
    return outcome


@shared_task(name="payments.reconcile_booking_fees")
def reconcile_booking_fees(booking_ids: list[int] | None = None, processor=None) -> dict:
    """
    Bring stored net application fees in line with the processor ledger.

    Covers paid and refunded bookings that have a payment reference. Safe to
    run repeatedly; unchanged bookings are not written.
    """
    qs = Booking.objects.filter(
        payment_status__in=[Booking.PaymentStatus.PAID, Booking.PaymentStatus.REFUNDED],
    ).exclude(processor_payment_reference="")
    if booking_ids:
        qs = qs.filter(pk__in=booking_ids)

    processor = processor or get_processor()
    rates = get_active_rates()
    report = {"checked": 0, "updated": 0, "estimated": 0, "discrepancies": []}
    for booking in qs.order_by("id"):
        outcome = reconcile_booking(booking, processor=processor, rates=rates)
        report["checked"] += 1
        report["updated"] += int(outcome["updated"])
        report["estimated"] += int(outcome["estimated"])
        if outcome["discrepancy"]:
            report["discrepancies"].append(outcome["discrepancy"])

    logger.info(
        "reconcile: checked=%s updated=%s estimated=%s discrepancies=%s",
        report["checked"],
        report["updated"],
        report["estimated"],
        len(report["discrepancies"]),
    )
    return report
