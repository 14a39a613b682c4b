from __future__ import annotations

import logging

from django.db import transaction
from rest_framework import status
from rest_framework.response import Response

from core.fee_settings import default_rates, get_active_rates
from operator_core.api_base import OperatorAPIView
from operator_core.audit import audit
from operator_core.models import OperatorAuditEvent
from operator_core.permissions import ALL_OPERATOR_ROLES, FINANCE_ROLES, HasOperatorRole, IsOperator
from operator_settings.models import FeeConfig
from operator_settings.serializers import RATE_FIELDS, FeeConfigPutSerializer, FeeConfigSerializer

logger = logging.getLogger(__name__)


def _fee_config_dict(config: FeeConfig | None) -> dict | None:
    if not config:
        return None
    data = {field: config.as_rates().as_dict()[field] for field in RATE_FIELDS}
    data["id"] = config.id
    data["description"] = config.description
    return data


class OperatorFeeConfigView(OperatorAPIView):
    http_method_names = ["get", "put"]

    def get_permissions(self):
        if self.request.method == "PUT":
            return [IsOperator(), HasOperatorRole.with_roles(FINANCE_ROLES)()]
        return [IsOperator(), HasOperatorRole.with_roles(ALL_OPERATOR_ROLES)()]

    def get(self, request):
        config = FeeConfig.objects.filter(is_active=True).select_related("created_by").first()
        if config is not None:
            payload = FeeConfigSerializer(config).data
            payload["source"] = "database"
            return Response(payload)

        payload = {"id": None, "is_active": True, "description": "", "source": "defaults"}
        payload.update(default_rates().as_dict())
        return Response(payload)

    def put(self, request):
        payload = request.data if isinstance(request.data, dict) else {}
        serializer = FeeConfigPutSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        with transaction.atomic():
            previous = FeeConfig.objects.filter(is_active=True).first()
            config = FeeConfig(
                service_rate=data["service_rate"],
                partner_commission_rate=data["partner_commission_rate"],
                processing_rate=data["processing_rate"],
                tax_rate=data["tax_rate"],
                description=data.get("description") or "",
                created_by=request.user,
            )
            config.save()
            audit(
                actor=request.user,
                action="fee_config.update",
                entity_type=OperatorAuditEvent.EntityType.FEE_CONFIG,
                entity_id=config.id,
                reason=data["reason"],
                before=_fee_config_dict(previous),
                after=_fee_config_dict(config),
                request=request,
            )

        # The save above invalidated the cache; this read repopulates it.
        active = get_active_rates(force_refresh=True)
        logger.info("fee_config: saved %s, active rates %s", config.id, active.as_dict())
        return Response(FeeConfigSerializer(config).data, status=status.HTTP_200_OK)


class OperatorFeeConfigHistoryView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(ALL_OPERATOR_ROLES)]
    http_method_names = ["get"]

    def get(self, request):
        qs = FeeConfig.objects.filter(is_active=False).select_related("created_by")
        return Response(FeeConfigSerializer(qs, many=True).data)
