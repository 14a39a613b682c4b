from decimal import Decimal

from rest_framework import serializers


def _format_money(value) -> str:
    if value in (None, ""):
        return "0.00"
    return f"{Decimal(value).quantize(Decimal('0.01'))}"


class ReportRangeSerializer(serializers.Serializer):
    start = serializers.DateField(required=False, allow_null=True)
    end = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        start, end = attrs.get("start"), attrs.get("end")
        if start and end and start > end:
            raise serializers.ValidationError({"end": ["End date must not be before start date."]})
        return attrs


class ReconcileRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255)
    booking_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), required=False, allow_empty=False
    )
