from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from operator_core.models import OperatorAuditEvent


def safe_json_value(value):
    """Make Decimals and dates JSON-friendly for audit snapshots."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: safe_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [safe_json_value(v) for v in value]
    return value


def request_ip_and_ua(request) -> tuple[str, str]:
    if request is None:
        return "", ""
    forwarded = (request.META.get("HTTP_X_FORWARDED_FOR") or "").split(",")[0].strip()
    ip = forwarded or request.META.get("REMOTE_ADDR", "")
    return ip, request.META.get("HTTP_USER_AGENT", "")


def audit(
    *,
    actor,
    action: str,
    entity_type: str,
    entity_id,
    reason: str,
    before: dict | None = None,
    after: dict | None = None,
    meta: dict | None = None,
    request=None,
) -> OperatorAuditEvent:
    """
    Persist an operator audit event. Raises ValueError if reason is missing.
    """
    if not reason:
        raise ValueError("reason is required for audit events")

    ip, user_agent = request_ip_and_ua(request)
    return OperatorAuditEvent.objects.create(
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
        before_json=safe_json_value(before),
        after_json=safe_json_value(after),
        meta_json=safe_json_value(meta),
        ip=ip or "",
        user_agent=user_agent or "",
    )
