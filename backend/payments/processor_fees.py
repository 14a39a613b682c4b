from __future__ import annotations

from decimal import Decimal

from django.conf import settings

from payments.fees import ZERO, round2, to_decimal


def _processor_rates(is_international_card: bool) -> tuple[Decimal, Decimal]:
    if is_international_card:
        return (
            Decimal(str(settings.PROCESSOR_INTERNATIONAL_RATE)),
            Decimal(str(settings.PROCESSOR_INTERNATIONAL_FIXED_FEE)),
        )
    return (
        Decimal(str(settings.PROCESSOR_DOMESTIC_RATE)),
        Decimal(str(settings.PROCESSOR_DOMESTIC_FIXED_FEE)),
    )


def estimate_processor_fee(amount: Decimal, is_international_card: bool = False) -> Decimal:
    """
    Estimate the processor's own cut of a charge: amount * rate + fixed fee.

    Only a fallback for when the processor ledger cannot be read.
    """
    value = to_decimal(amount, ZERO)
    if value <= 0:
        return ZERO
    rate, fixed_fee = _processor_rates(is_international_card)
    return round2(value * rate + fixed_fee)
