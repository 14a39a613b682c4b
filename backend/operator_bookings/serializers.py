from rest_framework import serializers

from bookings.models import Booking
from core.fee_settings import get_active_rates
from operator_bookings.models import BookingEvent
from operator_bookings.refunds import PARTIAL, REFUND_TYPES, is_pending_reference
from payments.fees import backfill_booking_fees
from payments.reconciliation import classify_refund


def _money(value) -> str | None:
    if value is None:
        return None
    return f"{value:.2f}"


class OperatorBookingUserSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    email = serializers.EmailField(read_only=True, allow_blank=True)
    name = serializers.SerializerMethodField()

    def get_name(self, obj):
        return obj.display_name() if obj else ""


class OperatorBookingEventSerializer(serializers.ModelSerializer):
    actor = OperatorBookingUserSerializer(read_only=True)

    class Meta:
        model = BookingEvent
        fields = ["id", "type", "payload", "actor", "created_at"]
        read_only_fields = fields


class OperatorBookingListSerializer(serializers.ModelSerializer):
    host = OperatorBookingUserSerializer(read_only=True)
    guest = OperatorBookingUserSerializer(read_only=True)
    space_id = serializers.IntegerField(source="space.id", read_only=True)
    space_name = serializers.CharField(source="space.name", read_only=True)
    total_paid = serializers.SerializerMethodField()
    refund_amount = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "reference",
            "status",
            "payment_status",
            "space_id",
            "space_name",
            "host",
            "guest",
            "start_time",
            "end_time",
            "total_paid",
            "refund_amount",
            "created_at",
        ]
        read_only_fields = fields

    def get_total_paid(self, obj: Booking) -> str:
        if obj.total_paid is not None:
            return _money(obj.total_paid)
        return _money(backfill_booking_fees(obj, get_active_rates()).total_paid)


class OperatorBookingDetailSerializer(OperatorBookingListSerializer):
    fee_breakdown = serializers.SerializerMethodField()
    refund_class = serializers.SerializerMethodField()
    pending_manual_actions = serializers.SerializerMethodField()
    events = serializers.SerializerMethodField()

    class Meta(OperatorBookingListSerializer.Meta):
        fields = OperatorBookingListSerializer.Meta.fields + [
            "currency",
            "is_international_card",
            "fee_breakdown",
            "transfer_reversal_amount",
            "net_application_fee",
            "platform_earnings",
            "net_fee_confidence",
            "processor_payment_reference",
            "processor_transfer_reference",
            "processor_refund_reference",
            "processor_transfer_reversal_reference",
            "refund_class",
            "pending_manual_actions",
            "cancelled_at",
            "cancellation_reason",
            "refunded_at",
            "updated_at",
            "events",
        ]
        read_only_fields = fields

    def get_fee_breakdown(self, obj: Booking) -> dict:
        breakdown = backfill_booking_fees(obj, get_active_rates())
        return {
            "base_amount": _money(breakdown.base_amount),
            "service_fee": _money(breakdown.service_fee),
            "processing_fee": _money(breakdown.processing_fee),
            "commission_amount": _money(breakdown.partner_commission),
            "total_paid": _money(breakdown.total_paid),
            "host_payout": _money(breakdown.partner_payout),
            "gross_application_fee": _money(breakdown.gross_application_fee),
        }

    def get_refund_class(self, obj: Booking) -> str:
        return classify_refund(obj)

    def get_pending_manual_actions(self, obj: Booking) -> list[str]:
        """Processor steps recorded with a placeholder reference, awaiting manual work."""
        pending = []
        if is_pending_reference(obj.processor_refund_reference):
            pending.append("refund")
        if is_pending_reference(obj.processor_transfer_reversal_reference):
            pending.append("transfer_reversal")
        return pending

    def get_events(self, obj: Booking):
        events = getattr(obj, "prefetched_events", None)
        if events is None:
            events = obj.events.select_related("actor").order_by("created_at", "id")
        return OperatorBookingEventSerializer(events, many=True).data


class BookingStatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.Status.choices)
    reason = serializers.CharField(max_length=2000)


class BookingRefundSerializer(serializers.Serializer):
    refund_type = serializers.ChoiceField(choices=REFUND_TYPES)
    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0
    )
    reason = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["refund_type"] == PARTIAL and attrs.get("amount") in (None, ""):
            raise serializers.ValidationError({"amount": ["Required for a partial refund."]})
        return attrs
