"""Per-booking guard that keeps two refunds for one booking from overlapping."""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from typing import Iterator

from django.conf import settings
from django.core.cache import cache

from core.errors import RefundInFlight

REFUND_LOCK_KEY = "bookings:refund:inflight:{booking_id}"


def refund_lock_key(booking_id: int) -> str:
    return REFUND_LOCK_KEY.format(booking_id=int(booking_id))


def is_refund_in_flight(booking_id: int) -> bool:
    return cache.get(refund_lock_key(booking_id)) is not None


@contextmanager
def refund_in_flight_guard(booking_id: int, timeout: int | None = None) -> Iterator[str]:
    """
    Hold the refund slot for ``booking_id`` or raise RefundInFlight.

    The slot is released on every exit path. The timeout only matters when a
    worker dies while holding it.
    """
    key = refund_lock_key(booking_id)
    token = secrets.token_hex(8)
    ttl = timeout or int(getattr(settings, "REFUND_LOCK_TIMEOUT_SECONDS", 120))
    if not cache.add(key, token, timeout=ttl):
        raise RefundInFlight(f"A refund is already in progress for booking {booking_id}.")
    try:
        yield token
    finally:
        # Only drop the slot if it is still ours.
        if cache.get(key) == token:
            cache.delete(key)
