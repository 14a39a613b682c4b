from decimal import Decimal

import pytest

from payments.ledger import (
    append_earnings_entry,
    compute_host_balances,
    list_earnings,
    record_compensating_entries,
)
from payments.models import EarningsLedgerEntry

pytestmark = pytest.mark.django_db


@pytest.fixture
def earning(paid_booking):
    return append_earnings_entry(
        host=paid_booking.host,
        booking=paid_booking,
        amount=Decimal("95.70"),
        description=f"Earnings for booking {paid_booking.reference}",
    )


def test_entries_are_append_only(earning):
    earning.amount = Decimal("1.00")
    with pytest.raises(ValueError):
        earning.save()


def test_full_refund_reverses_the_whole_entry(paid_booking, earning):
    created = record_compensating_entries(
        paid_booking,
        refund_class="full",
        refund_amount=Decimal("113.96"),
        host_refund_amount=Decimal("0"),
        total_paid=Decimal("113.96"),
    )

    assert len(created) == 1
    reversal = created[0]
    assert reversal.amount == Decimal("-95.70")
    assert reversal.kind == EarningsLedgerEntry.Kind.REFUND_REVERSAL
    assert reversal.reverses_id == earning.id
    assert reversal.description == f"Refund reversal for booking {paid_booking.reference}"
    earning.refresh_from_db()
    assert earning.amount == Decimal("95.70")


def test_partial_refund_reverses_proportionally(paid_booking, earning):
    created = record_compensating_entries(
        paid_booking,
        refund_class="partial",
        refund_amount=Decimal("56.98"),
        host_refund_amount=Decimal("0"),
        total_paid=Decimal("113.96"),
    )

    assert [entry.amount for entry in created] == [Decimal("-47.85")]


def test_split_refund_reverses_only_the_host_share(paid_booking, earning):
    append_earnings_entry(host=paid_booking.host, booking=paid_booking, amount=Decimal("10.00"))

    created = record_compensating_entries(
        paid_booking,
        refund_class="split_50_50",
        refund_amount=Decimal("47.85"),
        host_refund_amount=Decimal("47.85"),
        total_paid=Decimal("113.96"),
    )

    assert [entry.amount for entry in created] == [Decimal("-47.85")]
    assert created[0].description.startswith("50/50 split refund - host portion reversal")


def test_zero_reversal_writes_nothing(paid_booking, earning):
    created = record_compensating_entries(
        paid_booking,
        refund_class="split_50_50",
        refund_amount=Decimal("0.00"),
        host_refund_amount=Decimal("0.00"),
        total_paid=Decimal("113.96"),
    )

    assert created == []
    assert len(list_earnings(paid_booking)) == 1


def test_no_prior_earnings_means_no_compensating_entry(paid_booking):
    created = record_compensating_entries(
        paid_booking,
        refund_class="full",
        refund_amount=Decimal("113.96"),
        host_refund_amount=Decimal("0"),
        total_paid=Decimal("113.96"),
    )

    assert created == []


def test_host_balances_net_out_reversals(paid_booking, earning):
    record_compensating_entries(
        paid_booking,
        refund_class="split_50_50",
        refund_amount=Decimal("47.85"),
        host_refund_amount=Decimal("47.85"),
        total_paid=Decimal("113.96"),
    )

    assert compute_host_balances(paid_booking.host) == {
        "lifetime_gross_earnings": "95.70",
        "lifetime_reversals": "-47.85",
        "net_earnings": "47.85",
    }
