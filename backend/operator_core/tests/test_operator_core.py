from datetime import date
from decimal import Decimal

import pytest

from bookings.tests.fixtures import make_operator, ops_client
from operator_core.audit import audit, safe_json_value
from operator_core.models import OperatorAuditEvent

pytestmark = pytest.mark.django_db


def test_audit_requires_reason(support_operator):
    with pytest.raises(ValueError):
        audit(
            actor=support_operator,
            action="booking.status_change",
            entity_type=OperatorAuditEvent.EntityType.BOOKING,
            entity_id=1,
            reason="",
        )
    assert not OperatorAuditEvent.objects.exists()


def test_audit_stores_json_safe_snapshots(support_operator):
    event = audit(
        actor=support_operator,
        action="booking.refund",
        entity_type=OperatorAuditEvent.EntityType.BOOKING,
        entity_id=12,
        reason="guest_request",
        before={"refund_amount": None},
        after={"refund_amount": Decimal("20.00"), "day": date(2026, 3, 1)},
    )

    event.refresh_from_db()
    assert event.entity_id == "12"
    assert event.after_json == {"refund_amount": "20.00", "day": "2026-03-01"}
    assert event.ip == ""


def test_safe_json_value_handles_nesting():
    assert safe_json_value({"a": [Decimal("1.50"), {"b": Decimal("2")}]}) == {
        "a": ["1.50", {"b": "2"}]
    }


def test_operator_routes_404_when_disabled(settings, support_operator):
    settings.ENABLE_OPERATOR = False
    settings.OPS_ALLOWED_HOSTS = ["ops.example.com"]
    settings.ALLOWED_HOSTS = ["ops.example.com", "testserver"]

    resp = ops_client(support_operator).get("/api/operator/me/")

    assert resp.status_code == 404


@pytest.mark.usefixtures("enable_operator_routes")
def test_operator_routes_404_on_non_ops_host(support_operator):
    client = ops_client(support_operator)
    client.defaults["HTTP_HOST"] = "public.example.com"

    assert client.get("/api/operator/me/").status_code == 404


@pytest.mark.usefixtures("enable_operator_routes")
def test_me_lists_operator_roles():
    user = make_operator("multi", "operator_finance", "operator_support", "unrelated")

    resp = ops_client(user).get("/api/operator/me/")

    assert resp.status_code == 200
    assert resp.data["roles"] == ["operator_finance", "operator_support"]
    assert resp.data["is_staff"] is True


@pytest.mark.usefixtures("enable_operator_routes")
def test_me_rejects_non_staff(guest_user):
    assert ops_client(guest_user).get("/api/operator/me/").status_code == 403


@pytest.mark.usefixtures("enable_operator_routes")
def test_staff_without_role_cannot_list_audit_events():
    user = make_operator("bare")

    assert ops_client(user).get("/api/operator/audit-events/").status_code == 403


@pytest.mark.usefixtures("enable_operator_routes")
def test_audit_events_filter_by_entity(admin_operator):
    for entity_id in (1, 2):
        audit(
            actor=admin_operator,
            action="booking.status_change",
            entity_type=OperatorAuditEvent.EntityType.BOOKING,
            entity_id=entity_id,
            reason="check",
        )

    resp = ops_client(admin_operator).get(
        "/api/operator/audit-events/", {"entity_type": "booking", "entity_id": "2"}
    )

    assert resp.status_code == 200
    results = resp.data["results"]
    assert [row["entity_id"] for row in results] == ["2"]
    assert results[0]["actor_name"] == admin_operator.display_name()
