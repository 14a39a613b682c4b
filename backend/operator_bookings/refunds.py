"""
Refund decision and execution.

``process_refund`` walks one refund through an explicit state machine::

    REQUESTED -> PROCESSOR_REFUND_ATTEMPTED
              -> PROCESSOR_REFUND_CONFIRMED | PROCESSOR_REFUND_PENDING_MANUAL
              -> LEDGER_UPDATED -> NOTIFIED -> DONE

``FAILED_ABORTED`` is reached only before the processor is touched: the
booking is missing or has no payment reference. Processor errors never abort;
they leave a synthetic ``re_pending_<ms>`` reference and a warning so the
refund can be finished by hand. Ledger failures raise ``PersistenceFailure``
even when the processor already refunded. Notification failures only add a
warning.

The platform fee rule lives in ``_settle_net_fee``: a full refund zeroes the
net application fee, partial and 50/50 refunds leave it exactly as it was.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from django.db import transaction
from django.utils import timezone

from bookings.models import Booking
from core.errors import (
    BookingNotFound,
    NotificationFailure,
    PersistenceFailure,
    ProcessorUnavailable,
    ValidationFailure,
)
from core.fee_settings import get_active_rates
from notifications.services import notify
from operator_bookings.locks import refund_in_flight_guard
from operator_bookings.models import BookingEvent
from operator_bookings.services import record_booking_event
from operator_core.audit import audit
from operator_core.models import OperatorAuditEvent
from payments.fees import ZERO, FeeBreakdown, backfill_booking_fees, round2, to_decimal
from payments.ledger import record_compensating_entries
from payments.reconciliation import NetFee, host_net_share, reconcile_net_application_fee
from payments.stripe_api import get_processor, to_cents

logger = logging.getLogger(__name__)

PENDING_REFUND_PREFIX = "re_pending_"
PENDING_REVERSAL_PREFIX = "trr_pending_"

FULL = "full"
PARTIAL = "partial"
SPLIT_50_50 = "split_50_50"
REFUND_TYPES = (FULL, PARTIAL, SPLIT_50_50)

PROCESSOR_REASONS = {
    "guest_request": "requested_by_customer",
    "host_cancellation": "requested_by_customer",
    "property_issue": "duplicate",
    "system_error": "duplicate",
}
DEFAULT_PROCESSOR_REASON = "requested_by_customer"


class RefundState(str, Enum):
    REQUESTED = "requested"
    PROCESSOR_REFUND_ATTEMPTED = "processor_refund_attempted"
    PROCESSOR_REFUND_CONFIRMED = "processor_refund_confirmed"
    PROCESSOR_REFUND_PENDING_MANUAL = "processor_refund_pending_manual"
    LEDGER_UPDATED = "ledger_updated"
    NOTIFIED = "notified"
    DONE = "done"
    FAILED_ABORTED = "failed_aborted"


_TRANSITIONS: dict[RefundState, frozenset[RefundState]] = {
    RefundState.REQUESTED: frozenset(
        {RefundState.PROCESSOR_REFUND_ATTEMPTED, RefundState.FAILED_ABORTED}
    ),
    RefundState.PROCESSOR_REFUND_ATTEMPTED: frozenset(
        {RefundState.PROCESSOR_REFUND_CONFIRMED, RefundState.PROCESSOR_REFUND_PENDING_MANUAL}
    ),
    RefundState.PROCESSOR_REFUND_CONFIRMED: frozenset({RefundState.LEDGER_UPDATED}),
    RefundState.PROCESSOR_REFUND_PENDING_MANUAL: frozenset({RefundState.LEDGER_UPDATED}),
    RefundState.LEDGER_UPDATED: frozenset({RefundState.NOTIFIED}),
    RefundState.NOTIFIED: frozenset({RefundState.DONE}),
    RefundState.DONE: frozenset(),
    RefundState.FAILED_ABORTED: frozenset(),
}


class RefundStateMachine:
    def __init__(self) -> None:
        self.state = RefundState.REQUESTED
        self.history: list[RefundState] = [RefundState.REQUESTED]

    def advance(self, new_state: RefundState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal refund transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)


def pending_reference(prefix: str = PENDING_REFUND_PREFIX) -> str:
    return f"{prefix}{int(time.time() * 1000)}"


def is_pending_reference(reference: str | None) -> bool:
    if not reference:
        return False
    return reference.startswith((PENDING_REFUND_PREFIX, PENDING_REVERSAL_PREFIX))


def processor_reason(reason: str) -> str:
    return PROCESSOR_REASONS.get((reason or "").strip().lower(), DEFAULT_PROCESSOR_REASON)


def format_money(amount: Decimal, currency: str = "aud") -> str:
    symbol = "A$" if (currency or "").lower() == "aud" else f"{(currency or '').upper()} "
    return f"{symbol}{round2(amount)}"


@dataclass(frozen=True)
class RefundPlan:
    """Money split decided before the processor is called."""

    refund_type: str
    guest_amount: Decimal
    host_amount: Decimal | None
    total_paid: Decimal
    breakdown: FeeBreakdown
    full_amount_refund: bool = False

    @property
    def cancels_booking(self) -> bool:
        return self.refund_type == FULL


@dataclass
class ProcessorOutcome:
    refund_reference: str = ""
    reversal_reference: str = ""
    confirmed: bool = True
    warnings: list[str] = field(default_factory=list)


@dataclass
class RefundResult:
    booking_id: int
    refund_type: str
    state: RefundState
    history: list[RefundState]
    guest_amount: Decimal
    host_amount: Decimal | None
    refund_reference: str
    transfer_reversal_reference: str
    net_application_fee: Decimal | None
    platform_earnings: Decimal | None
    warnings: list[str] = field(default_factory=list)

    @property
    def pending_manual(self) -> bool:
        return RefundState.PROCESSOR_REFUND_PENDING_MANUAL in self.history

    def as_dict(self) -> dict:
        def _money(value):
            return None if value is None else str(round2(value))

        return {
            "booking_id": self.booking_id,
            "refund_type": self.refund_type,
            "state": self.state.value,
            "history": [state.value for state in self.history],
            "guest_amount": _money(self.guest_amount),
            "host_amount": _money(self.host_amount),
            "refund_reference": self.refund_reference,
            "transfer_reversal_reference": self.transfer_reversal_reference,
            "net_application_fee": _money(self.net_application_fee),
            "platform_earnings": _money(self.platform_earnings),
            "pending_manual": self.pending_manual,
            "warnings": list(self.warnings),
        }


def plan_refund(booking: Booking, *, refund_type: str, amount: Decimal | None = None) -> RefundPlan:
    """Decide the guest and host amounts. Raises ValidationFailure, never mutates."""
    if refund_type not in REFUND_TYPES:
        raise ValidationFailure(f"Unknown refund type '{refund_type}'.")
    if booking.payment_status == Booking.PaymentStatus.REFUNDED:
        raise ValidationFailure("This booking has already been refunded.")
    if booking.payment_status != Booking.PaymentStatus.PAID:
        raise ValidationFailure("Only paid bookings can be refunded.")

    breakdown = backfill_booking_fees(booking, get_active_rates())
    total = breakdown.total_paid
    requested = to_decimal(amount)
    if requested is not None:
        requested = round2(requested)

    if refund_type == FULL:
        if requested is not None and (requested <= 0 or requested > total):
            raise ValidationFailure("Refund amount must be between 0 and the amount paid.")
        guest_amount = requested if requested is not None else total
        return RefundPlan(
            FULL, guest_amount, None, total, breakdown, full_amount_refund=requested is None
        )

    if refund_type == PARTIAL:
        if requested is None:
            raise ValidationFailure("A partial refund needs an amount.")
        if requested <= 0 or requested > total:
            raise ValidationFailure("Refund amount must be between 0 and the amount paid.")
        return RefundPlan(PARTIAL, requested, None, total, breakdown)

    remainder = max(ZERO, total - breakdown.gross_application_fee)
    share = round2(remainder / 2)
    return RefundPlan(SPLIT_50_50, share, share, total, breakdown)


def _processor_metadata(booking: Booking, refund_type: str, reason: str) -> dict[str, str]:
    return {
        "booking_id": str(booking.id),
        "booking_reference": booking.reference,
        "refund_type": refund_type,
        "reason": reason,
    }


def _refund_guest(
    processor, booking: Booking, plan: RefundPlan, reason: str, outcome: ProcessorOutcome
):
    if plan.guest_amount <= 0:
        return
    is_full = plan.refund_type == FULL
    amount_cents = None if plan.full_amount_refund else to_cents(plan.guest_amount)
    try:
        refund = processor.refund_charge(
            booking.processor_payment_reference,
            amount_cents,
            processor_reason(reason),
            _processor_metadata(booking, plan.refund_type, reason),
            refund_application_fee=is_full,
            reverse_transfer=is_full,
            idempotency_key=f"refund:{booking.id}:{plan.refund_type}:{to_cents(plan.guest_amount)}",
        )
    except ProcessorUnavailable as exc:
        logger.warning(
            "refunds: processor refund failed, recording pending reference",
            exc_info=exc,
            extra={"booking_id": booking.id},
        )
        outcome.refund_reference = pending_reference(PENDING_REFUND_PREFIX)
        outcome.confirmed = False
        outcome.warnings.append(
            f"Processor refund could not be confirmed ({exc}). "
            "Recorded as pending for manual processing."
        )
        return
    outcome.refund_reference = refund.reference


def _reverse_host_share(
    processor, booking: Booking, plan: RefundPlan, reason: str, outcome: ProcessorOutcome
):
    if plan.host_amount is None or plan.host_amount <= 0:
        return
    try:
        transfer_ref = booking.processor_transfer_reference or processor.find_transfer_reference(
            booking.processor_payment_reference
        )
        if not transfer_ref:
            raise ProcessorUnavailable("No transfer to the host was found for this charge.")
        reversal = processor.reverse_transfer(
            transfer_ref,
            to_cents(plan.host_amount),
            _processor_metadata(booking, plan.refund_type, reason),
            idempotency_key=f"reversal:{booking.id}:{to_cents(plan.host_amount)}",
        )
    except ProcessorUnavailable as exc:
        logger.warning(
            "refunds: transfer reversal failed, recording pending reference",
            exc_info=exc,
            extra={"booking_id": booking.id},
        )
        outcome.reversal_reference = pending_reference(PENDING_REVERSAL_PREFIX)
        outcome.confirmed = False
        outcome.warnings.append(
            f"Host transfer reversal could not be confirmed ({exc}). "
            "Recorded as pending for manual processing."
        )
        return
    outcome.reversal_reference = reversal.reference


_PROCESSOR_STEPS: dict[str, tuple[Callable, ...]] = {
    FULL: (_refund_guest,),
    PARTIAL: (_refund_guest,),
    SPLIT_50_50: (_refund_guest, _reverse_host_share),
}


def execute_processor_refund(
    processor, booking: Booking, plan: RefundPlan, reason: str
) -> ProcessorOutcome:
    outcome = ProcessorOutcome()
    for step in _PROCESSOR_STEPS[plan.refund_type]:
        step(processor, booking, plan, reason, outcome)
    return outcome


def _settle_net_fee(booking: Booking, plan: RefundPlan) -> tuple[NetFee, Decimal]:
    """Net application fee and platform earnings after the refund."""
    if plan.refund_type == FULL:
        return NetFee.authoritative(ZERO, ZERO), ZERO

    stored_net = to_decimal(booking.net_application_fee)
    if stored_net is not None:
        confidence = booking.net_fee_confidence or Booking.NetFeeConfidence.ESTIMATED
        net = NetFee(round2(stored_net), confidence, plan.breakdown.gross_application_fee)
    else:
        net = reconcile_net_application_fee(
            plan.breakdown, is_international_card=booking.is_international_card
        )
    stored_earnings = to_decimal(booking.platform_earnings)
    if stored_earnings is not None:
        return net, round2(stored_earnings)
    return net, host_net_share(net, plan.breakdown.partner_commission)


def refund_reason_text(booking: Booking, plan: RefundPlan, reason: str) -> str:
    if plan.refund_type == SPLIT_50_50:
        return (
            f"50/50 split refund - Guest: {format_money(plan.guest_amount, booking.currency)}, "
            f"Host: {format_money(plan.host_amount or ZERO, booking.currency)}"
        )
    label = (reason or "").replace("_", " ").strip()
    kind = "full" if plan.refund_type == FULL else "partial"
    return f"{label}: {kind} refund of {format_money(plan.guest_amount, booking.currency)}"


def _snapshot(booking: Booking) -> dict:
    return {
        "status": booking.status,
        "payment_status": booking.payment_status,
        "refund_amount": booking.refund_amount,
        "transfer_reversal_amount": booking.transfer_reversal_amount,
        "net_application_fee": booking.net_application_fee,
        "platform_earnings": booking.platform_earnings,
    }


def apply_refund_to_ledger(
    booking: Booking,
    plan: RefundPlan,
    outcome: ProcessorOutcome,
    *,
    reason: str,
    notes: str = "",
    actor=None,
    request=None,
) -> Booking:
    """
    Write the refund onto the booking, its history and the earnings ledger as one unit.

    Raises PersistenceFailure when any of those writes fails; nothing is kept.
    """
    try:
        with transaction.atomic():
            locked = Booking.objects.select_for_update().get(pk=booking.pk)
            before = _snapshot(locked)
            now = timezone.now()

            net, platform_earnings = _settle_net_fee(locked, plan)
            locked.payment_status = Booking.PaymentStatus.REFUNDED
            locked.refunded_at = now
            locked.refund_amount = plan.guest_amount
            locked.processor_refund_reference = outcome.refund_reference
            locked.net_application_fee = net.amount
            locked.platform_earnings = platform_earnings
            locked.net_fee_confidence = net.confidence
            update_fields = [
                "payment_status",
                "refunded_at",
                "refund_amount",
                "processor_refund_reference",
                "net_application_fee",
                "platform_earnings",
                "net_fee_confidence",
                "updated_at",
            ]
            if plan.cancels_booking:
                locked.status = Booking.Status.CANCELLED
                locked.cancelled_at = locked.cancelled_at or now
                locked.cancellation_reason = locked.cancellation_reason or reason
                update_fields += ["status", "cancelled_at", "cancellation_reason"]
            if plan.refund_type == SPLIT_50_50:
                locked.transfer_reversal_amount = plan.host_amount
                locked.processor_transfer_reversal_reference = outcome.reversal_reference
                update_fields += [
                    "transfer_reversal_amount",
                    "processor_transfer_reversal_reference",
                ]
            locked.save(update_fields=update_fields)

            after = _snapshot(locked)
            record_booking_event(
                locked,
                type_value=BookingEvent.Type.REFUND,
                payload={
                    "old_value": {
                        "status": before["status"],
                        "payment_status": before["payment_status"],
                    },
                    "new_value": {
                        "status": after["status"],
                        "payment_status": after["payment_status"],
                    },
                    "reason": refund_reason_text(locked, plan, reason),
                    "notes": notes,
                    "refund_type": plan.refund_type,
                    "refund_amount": str(plan.guest_amount),
                    "transfer_reversal_amount": (
                        None if plan.host_amount is None else str(plan.host_amount)
                    ),
                    "processor_refund_reference": outcome.refund_reference,
                    "processor_transfer_reversal_reference": outcome.reversal_reference,
                    "pending_manual": not outcome.confirmed,
                },
                actor=actor,
            )
            record_compensating_entries(
                locked,
                refund_class=plan.refund_type,
                refund_amount=plan.guest_amount,
                host_refund_amount=plan.host_amount or ZERO,
                total_paid=plan.total_paid,
            )
            if getattr(actor, "is_authenticated", False):
                audit(
                    actor=actor,
                    action="booking.refund",
                    entity_type=OperatorAuditEvent.EntityType.BOOKING,
                    entity_id=locked.id,
                    reason=reason,
                    before=before,
                    after=after,
                    meta={
                        "refund_type": plan.refund_type,
                        "notes": notes,
                        "warnings": outcome.warnings,
                    },
                    request=request,
                )
    except Exception as exc:
        logger.exception("refunds: ledger update failed", extra={"booking_id": booking.id})
        raise PersistenceFailure(
            "The refund could not be recorded. Check the processor dashboard before retrying."
        ) from exc
    return locked


def _notify_parties(booking: Booking, plan: RefundPlan, reason: str, notifier) -> list[str]:
    data = {
        "booking_id": booking.id,
        "refund_amount": str(plan.guest_amount),
        "refund_type": plan.refund_type,
        "reason": reason,
    }
    amount = format_money(plan.guest_amount, booking.currency)
    messages = (
        (
            "guest",
            booking.guest_id,
            "Refund Processed",
            f"A refund of {amount} for booking {booking.reference} has been processed.",
        ),
        (
            "host",
            booking.host_id,
            "Booking Refunded",
            f"Booking {booking.reference} was refunded ({amount} to the guest). "
            "Your earnings for this booking have been adjusted.",
        ),
    )
    warnings = []
    for party, user_id, title, message in messages:
        try:
            sent = notifier(user_id, type_="refund", title=title, message=message, data=data)
        except NotificationFailure:
            logger.info(
                "refunds: %s notification failed",
                party,
                exc_info=True,
                extra={"booking_id": booking.id},
            )
            sent = False
        if not sent:
            warnings.append(f"Refund recorded but the {party} could not be notified.")
    return warnings


def process_refund(
    booking_id: int,
    *,
    refund_type: str,
    reason: str,
    amount: Optional[Decimal] = None,
    notes: str = "",
    actor=None,
    request=None,
    processor=None,
    notifier: Callable[..., bool] | None = None,
) -> RefundResult:
    """
    Run one operator refund end to end.

    Raises ValidationFailure (including BookingNotFound and RefundInFlight)
    with nothing mutated, or PersistenceFailure when the ledger write fails.
    Processor and notification problems come back as ``warnings``.
    """
    machine = RefundStateMachine()
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailure("A refund reason is required.")

    booking = Booking.objects.select_related("host", "guest").filter(pk=booking_id).first()
    if booking is None:
        machine.advance(RefundState.FAILED_ABORTED)
        raise BookingNotFound(f"Booking {booking_id} was not found.")
    if not booking.processor_payment_reference:
        machine.advance(RefundState.FAILED_ABORTED)
        raise ValidationFailure("No payment transaction found for this booking.")

    with refund_in_flight_guard(booking.id):
        booking.refresh_from_db()
        plan = plan_refund(booking, refund_type=refund_type, amount=amount)

        machine.advance(RefundState.PROCESSOR_REFUND_ATTEMPTED)
        outcome = execute_processor_refund(processor or get_processor(), booking, plan, reason)
        machine.advance(
            RefundState.PROCESSOR_REFUND_CONFIRMED
            if outcome.confirmed
            else RefundState.PROCESSOR_REFUND_PENDING_MANUAL
        )

        booking = apply_refund_to_ledger(
            booking, plan, outcome, reason=reason, notes=notes, actor=actor, request=request
        )
        machine.advance(RefundState.LEDGER_UPDATED)

    warnings = list(outcome.warnings)
    warnings += _notify_parties(booking, plan, reason, notifier or notify)
    machine.advance(RefundState.NOTIFIED)
    machine.advance(RefundState.DONE)

    logger.info(
        "refunds: %s refund recorded (%s)",
        plan.refund_type,
        "confirmed" if outcome.confirmed else "pending manual",
        extra={"booking_id": booking.id},
    )
    return RefundResult(
        booking_id=booking.id,
        refund_type=plan.refund_type,
        state=machine.state,
        history=list(machine.history),
        guest_amount=plan.guest_amount,
        host_amount=plan.host_amount,
        refund_reference=outcome.refund_reference,
        transfer_reversal_reference=outcome.reversal_reference,
        net_application_fee=to_decimal(booking.net_application_fee),
        platform_earnings=to_decimal(booking.platform_earnings),
        warnings=warnings,
    )
