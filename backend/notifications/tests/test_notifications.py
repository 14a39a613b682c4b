from unittest import mock

import pytest

from core.errors import NotificationFailure
from notifications import services, tasks
from notifications.models import Notification


@pytest.mark.django_db
def test_send_notification_persists_row(guest_user):
    notification_id = tasks.send_notification.run(
        guest_user.id, "refund", "Refund Processed", "A refund was processed.", {"booking_id": 7}
    )

    notification = Notification.objects.get(pk=notification_id)
    assert notification.user == guest_user
    assert notification.type == "refund"
    assert notification.data == {"booking_id": 7}
    assert notification.is_read is False


@pytest.mark.django_db
def test_send_notification_for_missing_user_is_skipped(caplog):
    assert tasks.send_notification.run(424242, "refund", "t", "m") is None
    assert not Notification.objects.exists()
    assert "no longer exists" in caplog.text


@pytest.mark.django_db
def test_notify_queues_task(guest_user):
    assert services.notify(guest_user.id, type_="refund", title="Hi", message="There") is True
    assert Notification.objects.filter(user=guest_user, title="Hi").exists()


def test_notify_without_user_is_false():
    assert services.notify(None, type_="refund", title="Hi", message="There") is False


def test_notify_raises_when_the_broker_is_down():
    with mock.patch.object(
        tasks.send_notification, "delay", side_effect=ConnectionError("broker down")
    ):
        with pytest.raises(NotificationFailure) as excinfo:
            services.notify(5, type_="refund", title="Hi", message="There")

    assert excinfo.value.code == "notification_failure"
    assert isinstance(excinfo.value.__cause__, ConnectionError)
