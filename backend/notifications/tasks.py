from __future__ import annotations

import logging
from typing import Optional

from celery import shared_task
from django.contrib.auth import get_user_model

from notifications.models import Notification

logger = logging.getLogger(__name__)
User = get_user_model()


def _get_user(user_id: int) -> Optional[User]:
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.warning("notifications: user %s no longer exists", user_id)
        return None


@shared_task(name="notifications.send_notification")
def send_notification(
    user_id: int, type_: str, title: str, message: str, data: dict | None = None
):
    """Persist an in-app notification for a user. Returns the notification id."""
    user = _get_user(user_id)
    if user is None:
        return None
    notification = Notification.objects.create(
        user=user,
        type=type_,
        title=title,
        message=message,
        data=data or {},
    )
    return notification.id
