"""
Stripe adapter for refunds, transfer reversals, charge ledger detail and
Connect payouts.

Domain code talks to ``StripeProcessor`` (or any object with the same
methods) and never imports ``stripe`` directly. Only object ids are logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone as dt_timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

import stripe
from django.conf import settings

from core.errors import ProcessorConfigurationError, ProcessorUnavailable
from payments.reconciliation import ProcessorLedgerDetail

logger = logging.getLogger(__name__)

PAYOUT_PAGE_LIMIT = 100


@dataclass(frozen=True)
class ProcessorRefund:
    reference: str
    status: str
    amount_cents: int | None = None


@dataclass(frozen=True)
class ProcessorReversal:
    reference: str
    status: str
    amount_cents: int | None = None


@dataclass(frozen=True)
class ProcessorPayout:
    reference: str
    amount: Decimal
    status: str
    created_at: datetime


def _get_stripe_api_key() -> str:
    """Return the configured Stripe API key or raise if missing."""
    api_key = getattr(settings, "STRIPE_SECRET_KEY", "")
    if not api_key:
        raise ProcessorConfigurationError("Stripe secret key not configured.")
    return api_key


def to_cents(amount: Decimal) -> int:
    """Convert Decimal dollars to integer cents, rounding to the nearest cent."""
    cents = (Decimal(str(amount)) * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def _from_cents(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return (Decimal(str(value)) / Decimal("100")).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return None


def _object_value(data: Any, field: str, default: Any = None) -> Any:
    """Safely fetch a field from a Stripe object or dict payload."""
    if data is None:
        return default
    if isinstance(data, Mapping):
        return data.get(field, default)
    return getattr(data, field, default)


def _handle_stripe_error(exc: stripe.StripeError) -> None:
    """Map Stripe SDK errors onto internal exception types."""
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        raise ProcessorConfigurationError(
            "Stripe credentials are invalid or unauthorized."
        ) from exc
    if isinstance(exc, (stripe.RateLimitError, stripe.APIConnectionError, stripe.APIError)):
        raise ProcessorUnavailable("Temporary Stripe error, please retry.") from exc
    message = getattr(exc, "user_message", None) or "Stripe request failed."
    raise ProcessorUnavailable(message) from exc


def _to_payout(payout: Any) -> ProcessorPayout:
    created = _object_value(payout, "created")
    return ProcessorPayout(
        reference=_object_value(payout, "id", ""),
        amount=_from_cents(_object_value(payout, "amount")) or Decimal("0.00"),
        status=_object_value(payout, "status", "") or "",
        created_at=datetime.fromtimestamp(int(created or 0), tz=dt_timezone.utc),
    )


def _charge_lookup_kwargs(charge_ref: str) -> dict[str, str]:
    if charge_ref.startswith("ch_"):
        return {"charge": charge_ref}
    return {"payment_intent": charge_ref}


class StripeProcessor:
    """Live payment processor backed by the Stripe SDK."""

    def __init__(self, *, api_key: str | None = None, timeout: float | None = None):
        self._api_key = api_key
        self._timeout = timeout
        self._configured = False

    def _configure(self) -> None:
        if self._configured:
            return
        stripe.api_key = self._api_key or _get_stripe_api_key()
        stripe.max_network_retries = int(getattr(settings, "STRIPE_MAX_NETWORK_RETRIES", 1))
        timeout = self._timeout or float(getattr(settings, "STRIPE_TIMEOUT_SECONDS", 20))
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        self._configured = True

    def _retrieve_charge(self, charge_ref: str, expand: list[str]) -> Any:
        if charge_ref.startswith("ch_"):
            return stripe.Charge.retrieve(charge_ref, expand=expand)
        # latest_charge comes back as a bare id unless it is expanded itself.
        intent = stripe.PaymentIntent.retrieve(
            charge_ref,
            expand=["latest_charge", *(f"latest_charge.{field}" for field in expand)],
        )
        return _object_value(intent, "latest_charge")

    def refund_charge(
        self,
        charge_ref: str,
        amount_cents: int | None,
        reason: str,
        metadata: Mapping[str, str],
        *,
        refund_application_fee: bool = False,
        reverse_transfer: bool = False,
        idempotency_key: str | None = None,
    ) -> ProcessorRefund:
        """Refund the guest charge. ``amount_cents=None`` refunds everything."""
        self._configure()
        params: dict[str, Any] = {
            **_charge_lookup_kwargs(charge_ref),
            "reason": reason,
            "metadata": dict(metadata),
            "refund_application_fee": refund_application_fee,
            "reverse_transfer": reverse_transfer,
        }
        if amount_cents is not None:
            params["amount"] = amount_cents
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)
        logger.info("stripe: refund %s created for %s", _object_value(refund, "id"), charge_ref)
        return ProcessorRefund(
            reference=_object_value(refund, "id", ""),
            status=_object_value(refund, "status", "") or "",
            amount_cents=_object_value(refund, "amount"),
        )

    def find_transfer_reference(self, charge_ref: str) -> str | None:
        """Return the id of the transfer that paid the host for this charge, if any."""
        self._configure()
        try:
            charge = self._retrieve_charge(charge_ref, expand=[])
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)
        transfer = _object_value(charge, "transfer")
        if transfer is None or isinstance(transfer, str):
            return transfer
        return _object_value(transfer, "id")

    def reverse_transfer(
        self,
        transfer_ref: str,
        amount_cents: int,
        metadata: Mapping[str, str] | None = None,
        *,
        idempotency_key: str | None = None,
    ) -> ProcessorReversal:
        """Claw back part of a transfer already sent to the host's Connect account."""
        self._configure()
        params: dict[str, Any] = {"amount": amount_cents, "metadata": dict(metadata or {})}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            reversal = stripe.Transfer.create_reversal(transfer_ref, **params)
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)
        logger.info(
            "stripe: transfer reversal %s created for %s",
            _object_value(reversal, "id"),
            transfer_ref,
        )
        return ProcessorReversal(
            reference=_object_value(reversal, "id", ""),
            status="succeeded",
            amount_cents=_object_value(reversal, "amount"),
        )

    def get_charge_ledger_detail(self, charge_ref: str) -> ProcessorLedgerDetail | None:
        """
        Authoritative application fee figures for a charge.

        Gross is the application fee Stripe recorded on the charge. The
        processor fee is the full fee on the charge's balance transaction.
        Returns None when the charge carries no application fee data.
        """
        self._configure()
        try:
            charge = self._retrieve_charge(charge_ref, expand=["balance_transaction", "transfer"])
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)
        if charge is None:
            return None

        gross = _from_cents(_object_value(charge, "application_fee_amount"))
        balance_transaction = _object_value(charge, "balance_transaction")
        processor_fee = _from_cents(_object_value(balance_transaction, "fee"))
        if gross is None or processor_fee is None:
            return None

        transfer = _object_value(charge, "transfer")
        transfer_amount = None
        if transfer is not None and not isinstance(transfer, str):
            transfer_amount = _from_cents(_object_value(transfer, "amount"))

        return ProcessorLedgerDetail(
            gross_fee=gross,
            processor_fee=processor_fee,
            net_fee=gross - processor_fee,
            transfer_amount=transfer_amount,
        )

    def list_account_payouts(
        self, account_ref: str, from_date: date, to_date: date
    ) -> list[ProcessorPayout]:
        """Payouts from a host's Connect account to their bank within [from_date, to_date]."""
        self._configure()
        start = datetime.combine(from_date, time.min, tzinfo=dt_timezone.utc)
        end = datetime.combine(to_date, time.max, tzinfo=dt_timezone.utc)
        payouts: list[ProcessorPayout] = []
        try:
            page = stripe.Payout.list(
                created={"gte": int(start.timestamp()), "lte": int(end.timestamp())},
                limit=PAYOUT_PAGE_LIMIT,
                stripe_account=account_ref,
            )
            # Later pages are fetched lazily while iterating.
            for payout in page.auto_paging_iter():
                payouts.append(_to_payout(payout))
        except stripe.StripeError as exc:
            _handle_stripe_error(exc)
        return payouts


_default_processor: StripeProcessor | None = None


def get_processor() -> StripeProcessor:
    global _default_processor
    if _default_processor is None:
        _default_processor = StripeProcessor()
    return _default_processor
