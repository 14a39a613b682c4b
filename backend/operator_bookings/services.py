import logging

from django.db import transaction
from django.utils import timezone

from bookings.models import Booking
from core.errors import NotificationFailure, PersistenceFailure, ValidationFailure
from notifications.services import notify
from operator_bookings.models import BookingEvent

logger = logging.getLogger(__name__)


def record_booking_event(
    booking: Booking, *, type_value: str, payload: dict, actor
) -> BookingEvent:
    """Append a modification record. Errors propagate to the caller's transaction."""
    return BookingEvent.objects.create(
        booking=booking,
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        type=type_value,
        payload=payload,
    )


def change_booking_status(
    booking: Booking, *, new_status: str, reason: str, actor=None
) -> Booking:
    """
    Move a booking to ``new_status`` and append a status_change record.

    Cancelling stamps ``cancelled_at`` and the cancellation reason. The guest
    is notified once the change is committed.
    """
    if new_status not in Booking.Status.values:
        raise ValidationFailure(f"Unknown booking status '{new_status}'.")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailure("A reason is required to change a booking status.")
    if booking.status == new_status:
        return booking

    old_status = booking.status
    update_fields = ["status", "updated_at"]
    booking.status = new_status
    if new_status == Booking.Status.CANCELLED:
        booking.cancelled_at = booking.cancelled_at or timezone.now()
        booking.cancellation_reason = reason
        update_fields += ["cancelled_at", "cancellation_reason"]

    try:
        with transaction.atomic():
            booking.save(update_fields=update_fields)
            record_booking_event(
                booking,
                type_value=BookingEvent.Type.STATUS_CHANGE,
                payload={"old_value": old_status, "new_value": new_status, "reason": reason},
                actor=actor,
            )
    except Exception as exc:
        logger.exception(
            "booking_event: failed to apply status change", extra={"booking_id": booking.id}
        )
        booking.status = old_status
        raise PersistenceFailure("Booking status change could not be saved.") from exc

    try:
        notify(
            booking.guest_id,
            type_="booking_status",
            title="Booking Status Updated",
            message=f"Your booking {booking.reference} is now {new_status}.",
            data={"booking_id": booking.id, "old_status": old_status, "new_status": new_status},
        )
    except NotificationFailure:
        logger.info(
            "operator_bookings: status notification failed",
            exc_info=True,
            extra={"booking_id": booking.id},
        )
    return booking
