from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from operator_settings.models import FeeConfig

RATE_FIELDS = ("service_rate", "partner_commission_rate", "processing_rate", "tax_rate")


def _rate_field():
    return serializers.DecimalField(
        max_digits=7,
        decimal_places=5,
        min_value=Decimal("0"),
        max_value=Decimal("1"),
    )


class FeeConfigSerializer(serializers.ModelSerializer):
    created_by_name = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = FeeConfig
        fields = [
            "id",
            *RATE_FIELDS,
            "is_active",
            "description",
            "created_at",
            "deactivated_at",
            "created_by_name",
        ]
        read_only_fields = fields

    def get_created_by_name(self, obj: FeeConfig) -> str | None:
        user = getattr(obj, "created_by", None)
        return user.display_name() if user else None


class FeeConfigPutSerializer(serializers.Serializer):
    service_rate = _rate_field()
    partner_commission_rate = _rate_field()
    processing_rate = _rate_field()
    tax_rate = _rate_field()
    description = serializers.CharField(required=False, allow_blank=True, default="")
    reason = serializers.CharField(allow_blank=False, trim_whitespace=True)

    def validate_reason(self, value: str) -> str:
        reason = (value or "").strip()
        if not reason:
            raise serializers.ValidationError("reason is required")
        return reason
