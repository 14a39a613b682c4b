"""Notification sender used by booking workflows."""

from __future__ import annotations

import logging

from core.errors import NotificationFailure
from notifications import tasks as notification_tasks

logger = logging.getLogger(__name__)


def notify(
    user_id: int | None,
    *,
    type_: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> bool:
    """
    Queue a notification. Returns False when there is nobody to notify.

    Raises NotificationFailure when the task cannot be queued. Callers treat
    that as a warning; it never rolls back the change being announced.
    """
    if not user_id:
        return False
    try:
        notification_tasks.send_notification.delay(user_id, type_, title, message, data or {})
    except Exception as exc:
        raise NotificationFailure(f"Could not queue {type_} notification.") from exc
    return True
