from decimal import Decimal

import pytest

from bookings.models import Booking
from payments.fees import FeeRates, backfill_booking_fees, compute_fees, resolve_true_total, round2

RATES = FeeRates(
    service_rate=Decimal("0.12"),
    partner_commission_rate=Decimal("0.04"),
    processing_rate=Decimal("0.0175"),
    tax_rate=Decimal("0.20"),
)


def test_compute_fees_matches_worked_example():
    fees = compute_fees(Decimal("100"), RATES)

    assert fees.service_fee == Decimal("12.00")
    assert fees.processing_fee == Decimal("1.96")
    assert fees.partner_commission == Decimal("4.00")
    assert fees.total_paid == Decimal("113.96")
    assert fees.partner_payout == Decimal("96.00")
    assert fees.gross_application_fee == Decimal("17.96")


def test_processing_fee_is_charged_on_subtotal_without_fixed_fee():
    fees = compute_fees(Decimal("250.00"), RATES)

    assert fees.processing_fee == round2((Decimal("250.00") + fees.service_fee) * Decimal("0.0175"))


@pytest.mark.parametrize("base", [Decimal("0"), Decimal("-5.00")])
def test_non_positive_base_returns_all_zero(base):
    fees = compute_fees(base, RATES)

    assert fees.total_paid == Decimal("0.00")
    assert fees.service_fee == Decimal("0.00")
    assert fees.partner_payout == Decimal("0.00")


@pytest.mark.parametrize("base", ["0.01", "19.99", "87.35", "1234.56"])
def test_totals_are_consistent_and_idempotent(base):
    first = compute_fees(Decimal(base), RATES)
    second = compute_fees(Decimal(base), RATES)

    assert first == second
    assert first.total_paid == first.base_amount + first.service_fee + first.processing_fee
    assert first.partner_payout == first.base_amount - first.partner_commission


def test_round2_rounds_half_up():
    assert round2(Decimal("1.005")) == Decimal("1.01")
    assert round2("2.344") == Decimal("2.34")


def test_true_total_prefers_captured_total():
    total = resolve_true_total(
        recomputed_total=Decimal("113.96"),
        total_paid=Decimal("120.00"),
        price=Decimal("110.00"),
    )
    assert total == Decimal("120.00")


def test_true_total_uses_price_only_when_it_disagrees_by_more_than_a_cent():
    assert resolve_true_total(
        recomputed_total=Decimal("113.96"), price=Decimal("113.97")
    ) == Decimal("113.96")
    assert resolve_true_total(
        recomputed_total=Decimal("113.96"), price=Decimal("115.00")
    ) == Decimal("115.00")


def test_backfill_fills_missing_fees_but_keeps_stored_values():
    booking = Booking(
        base_amount=Decimal("100.00"),
        service_fee=Decimal("10.00"),
        processing_fee=None,
        commission_amount=None,
        total_paid=None,
    )

    breakdown = backfill_booking_fees(booking, RATES)

    assert breakdown.service_fee == Decimal("10.00")
    assert breakdown.processing_fee == Decimal("1.96")
    assert breakdown.partner_commission == Decimal("4.00")
    assert breakdown.total_paid == Decimal("111.96")
    assert booking.processing_fee is None


def test_backfill_never_overrides_captured_total():
    booking = Booking(base_amount=Decimal("100.00"), total_paid=Decimal("99.00"))

    breakdown = backfill_booking_fees(booking, RATES)

    assert breakdown.total_paid == Decimal("99.00")
