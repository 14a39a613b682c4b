from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
import stripe

from core.errors import ProcessorConfigurationError, ProcessorUnavailable
from payments.stripe_api import StripeProcessor, to_cents


@pytest.fixture
def processor():
    return StripeProcessor(api_key="sk_test_123", timeout=5)


def test_to_cents_rounds_half_up():
    assert to_cents(Decimal("47.855")) == 4786
    assert to_cents(Decimal("113.96")) == 11396


def test_missing_secret_key_is_a_configuration_error(settings):
    settings.STRIPE_SECRET_KEY = ""

    with pytest.raises(ProcessorConfigurationError):
        StripeProcessor().refund_charge("pi_123", 100, "requested_by_customer", {})


def test_refund_charge_passes_flags_and_amount(processor):
    refund = SimpleNamespace(id="re_123", status="succeeded", amount=2000)
    with mock.patch("payments.stripe_api.stripe.Refund.create", return_value=refund) as create:
        result = processor.refund_charge(
            "pi_123",
            2000,
            "requested_by_customer",
            {"booking_id": "7"},
            idempotency_key="refund:7:partial:2000",
        )

    assert result.reference == "re_123"
    kwargs = create.call_args.kwargs
    assert kwargs["payment_intent"] == "pi_123"
    assert kwargs["amount"] == 2000
    assert kwargs["refund_application_fee"] is False
    assert kwargs["reverse_transfer"] is False
    assert kwargs["idempotency_key"] == "refund:7:partial:2000"


def test_full_refund_omits_amount_for_charge_ids(processor):
    refund = SimpleNamespace(id="re_124", status="pending", amount=11396)
    with mock.patch("payments.stripe_api.stripe.Refund.create", return_value=refund) as create:
        processor.refund_charge(
            "ch_123",
            None,
            "duplicate",
            {},
            refund_application_fee=True,
            reverse_transfer=True,
        )

    kwargs = create.call_args.kwargs
    assert kwargs["charge"] == "ch_123"
    assert "amount" not in kwargs
    assert kwargs["refund_application_fee"] is True


@pytest.mark.parametrize(
    "error, expected",
    [
        (stripe.APIConnectionError("network down"), ProcessorUnavailable),
        (stripe.RateLimitError("slow down"), ProcessorUnavailable),
        (stripe.AuthenticationError("bad key"), ProcessorConfigurationError),
    ],
)
def test_stripe_errors_are_mapped(processor, error, expected):
    with mock.patch("payments.stripe_api.stripe.Refund.create", side_effect=error):
        with pytest.raises(expected):
            processor.refund_charge("pi_123", 100, "requested_by_customer", {})


def test_reverse_transfer(processor):
    reversal = SimpleNamespace(id="trr_123", amount=4785)
    with mock.patch(
        "payments.stripe_api.stripe.Transfer.create_reversal", return_value=reversal
    ) as create:
        result = processor.reverse_transfer("tr_123", 4785, {"booking_id": "7"})

    assert result.reference == "trr_123"
    assert create.call_args.args == ("tr_123",)
    assert create.call_args.kwargs["amount"] == 4785


def test_charge_ledger_detail_from_payment_intent(processor):
    intent = SimpleNamespace(
        latest_charge=SimpleNamespace(
            application_fee_amount=1826,
            balance_transaction=SimpleNamespace(fee=350),
            transfer=SimpleNamespace(id="tr_123", amount=9570),
        )
    )
    with mock.patch("payments.stripe_api.stripe.PaymentIntent.retrieve", return_value=intent):
        detail = processor.get_charge_ledger_detail("pi_123")

    assert detail.gross_fee == Decimal("18.26")
    assert detail.processor_fee == Decimal("3.50")
    assert detail.net_fee == Decimal("14.76")
    assert detail.transfer_amount == Decimal("95.70")


def test_charge_without_application_fee_has_no_ledger_detail(processor):
    charge = SimpleNamespace(application_fee_amount=None, balance_transaction=None, transfer=None)
    with mock.patch("payments.stripe_api.stripe.Charge.retrieve", return_value=charge):
        assert processor.get_charge_ledger_detail("ch_123") is None


def _retrieve_intent(intent_id, expand=()):
    charge = SimpleNamespace(
        id="ch_host_1",
        transfer="tr_host_1",
        application_fee_amount=1826,
        balance_transaction="txn_1",
    )
    # Stripe only inlines latest_charge when it is expanded explicitly.
    latest_charge = charge if "latest_charge" in expand else "ch_host_1"
    return SimpleNamespace(id=intent_id, latest_charge=latest_charge)


def test_find_transfer_reference_expands_latest_charge(processor):
    with mock.patch(
        "payments.stripe_api.stripe.PaymentIntent.retrieve", side_effect=_retrieve_intent
    ) as retrieve:
        assert processor.find_transfer_reference("pi_test_123") == "tr_host_1"

    assert "latest_charge" in retrieve.call_args.kwargs["expand"]


def test_find_transfer_reference_for_charge_ids(processor):
    charge = SimpleNamespace(transfer=SimpleNamespace(id="tr_host_2"))
    with mock.patch("payments.stripe_api.stripe.Charge.retrieve", return_value=charge):
        assert processor.find_transfer_reference("ch_123") == "tr_host_2"


def test_ledger_lookup_expands_nested_fields_under_latest_charge(processor):
    intent = SimpleNamespace(latest_charge=None)
    with mock.patch(
        "payments.stripe_api.stripe.PaymentIntent.retrieve", return_value=intent
    ) as retrieve:
        assert processor.get_charge_ledger_detail("pi_123") is None

    assert retrieve.call_args.kwargs["expand"] == [
        "latest_charge",
        "latest_charge.balance_transaction",
        "latest_charge.transfer",
    ]


class _PayoutListing:
    """List object whose auto_paging_iter walks every page, like the SDK's."""

    def __init__(self, *pages):
        self.data = pages[0]
        self.has_more = len(pages) > 1
        self._pages = pages

    def auto_paging_iter(self):
        for page in self._pages:
            yield from page


def _sdk_payout(payout_id, amount, created, status="paid"):
    return SimpleNamespace(id=payout_id, amount=amount, status=status, created=created)


def test_list_account_payouts(processor):
    listing = _PayoutListing([_sdk_payout("po_1", 9570, 1700000000)])
    with mock.patch(
        "payments.stripe_api.stripe.Payout.list", return_value=listing
    ) as list_payouts:
        payouts = processor.list_account_payouts("acct_1", date(2023, 11, 1), date(2023, 11, 30))

    assert list_payouts.call_args.kwargs["stripe_account"] == "acct_1"
    assert payouts[0].amount == Decimal("95.70")
    assert payouts[0].status == "paid"


def test_list_account_payouts_reads_every_page(processor):
    first_page = [_sdk_payout(f"po_{n}", 1000, 1700100000 - n) for n in range(100)]
    listing = _PayoutListing(first_page, [_sdk_payout("po_old", 9570, 1699000000)])
    with mock.patch("payments.stripe_api.stripe.Payout.list", return_value=listing):
        payouts = processor.list_account_payouts("acct_1", date(2023, 11, 1), date(2023, 11, 30))

    assert len(payouts) == 101
    assert payouts[-1].reference == "po_old"
    assert payouts[-1].amount == Decimal("95.70")


def test_payout_paging_errors_are_mapped(processor):
    listing = mock.Mock()
    listing.auto_paging_iter.side_effect = stripe.APIConnectionError("network down")
    with mock.patch("payments.stripe_api.stripe.Payout.list", return_value=listing):
        with pytest.raises(ProcessorUnavailable):
            processor.list_account_payouts("acct_1", date(2023, 11, 1), date(2023, 11, 30))
