from decimal import Decimal

import pytest

from bookings.models import Booking
from operator_bookings.models import BookingEvent
from payments.reconciliation import ProcessorLedgerDetail
from payments.tasks import reconcile_booking_fees

pytestmark = pytest.mark.django_db


def test_authoritative_ledger_replaces_estimate_and_reports_discrepancy(
    booking_factory, fake_processor
):
    booking = booking_factory(
        net_application_fee=Decimal("15.13"),
        net_fee_confidence=Booking.NetFeeConfidence.ESTIMATED,
    )
    fake_processor.ledger["pi_test_123"] = ProcessorLedgerDetail(
        gross_fee=Decimal("18.26"), processor_fee=Decimal("3.50"), net_fee=Decimal("14.76")
    )

    report = reconcile_booking_fees(processor=fake_processor)

    assert report["checked"] == 1
    assert report["updated"] == 1
    assert report["estimated"] == 0
    assert report["discrepancies"] == [
        {
            "booking_id": booking.id,
            "reference": booking.reference,
            "stored": "15.13",
            "reconciled": "14.76",
            "difference": "-0.37",
            "confidence": "authoritative",
        }
    ]
    booking.refresh_from_db()
    assert booking.net_application_fee == Decimal("14.76")
    assert booking.platform_earnings == Decimal("3.48")
    assert booking.net_fee_confidence == Booking.NetFeeConfidence.AUTHORITATIVE
    event = BookingEvent.objects.get(booking=booking)
    assert event.type == BookingEvent.Type.FEE_RECONCILIATION
    assert event.payload["old_value"] == "15.13"


def test_failed_lookup_falls_back_to_estimate(booking_factory, fake_processor):
    booking = booking_factory()
    fake_processor.ledger_errors.add("pi_test_123")

    report = reconcile_booking_fees(processor=fake_processor)

    assert report["estimated"] == 1
    assert report["updated"] == 1
    assert report["discrepancies"] == []
    booking.refresh_from_db()
    assert booking.net_application_fee == Decimal("15.13")
    assert booking.net_fee_confidence == Booking.NetFeeConfidence.ESTIMATED


def test_authoritative_value_is_not_downgraded_when_lookup_fails(booking_factory, fake_processor):
    booking = booking_factory(
        net_application_fee=Decimal("15.30"),
        platform_earnings=Decimal("3.60"),
        net_fee_confidence=Booking.NetFeeConfidence.AUTHORITATIVE,
    )
    fake_processor.ledger_errors.add("pi_test_123")

    report = reconcile_booking_fees(processor=fake_processor)

    assert report["updated"] == 0
    booking.refresh_from_db()
    assert booking.net_application_fee == Decimal("15.30")


def test_fully_refunded_booking_reconciles_to_zero(booking_factory, fake_processor):
    booking = booking_factory(
        payment_status=Booking.PaymentStatus.REFUNDED,
        status=Booking.Status.CANCELLED,
        refund_amount=Decimal("113.96"),
        net_application_fee=Decimal("15.13"),
    )

    report = reconcile_booking_fees(processor=fake_processor)

    assert report["discrepancies"][0]["reconciled"] == "0.00"
    booking.refresh_from_db()
    assert booking.net_application_fee == Decimal("0.00")
    assert booking.platform_earnings == Decimal("0.00")


def test_skips_unpaid_and_unreferenced_bookings(booking_factory, fake_processor):
    booking_factory(payment_status=Booking.PaymentStatus.PENDING)
    booking_factory(processor_payment_reference="")

    report = reconcile_booking_fees(processor=fake_processor)

    assert report == {"checked": 0, "updated": 0, "estimated": 0, "discrepancies": []}


def test_second_run_writes_nothing(booking_factory, fake_processor):
    booking_factory()
    reconcile_booking_fees(processor=fake_processor)

    report = reconcile_booking_fees(processor=fake_processor)

    assert report["checked"] == 1
    assert report["updated"] == 0
