from django.db.models import Prefetch
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status
from rest_framework.response import Response

from bookings.models import Booking
from operator_bookings.filters import OperatorBookingFilter
from operator_bookings.models import BookingEvent
from operator_bookings.refunds import process_refund
from operator_bookings.serializers import (
    BookingRefundSerializer,
    BookingStatusChangeSerializer,
    OperatorBookingDetailSerializer,
    OperatorBookingListSerializer,
)
from operator_bookings.services import change_booking_status
from operator_core.api_base import OperatorAPIView, OperatorThrottleMixin
from operator_core.audit import audit
from operator_core.models import OperatorAuditEvent
from operator_core.permissions import (
    ALL_OPERATOR_ROLES,
    FINANCE_ROLES,
    SUPPORT_ROLES,
    HasOperatorRole,
    IsOperator,
)


class OperatorBookingListView(OperatorThrottleMixin, generics.ListAPIView):
    serializer_class = OperatorBookingListSerializer
    permission_classes = [IsOperator, HasOperatorRole.with_roles(ALL_OPERATOR_ROLES)]
    filter_backends = [DjangoFilterBackend]
    filterset_class = OperatorBookingFilter
    http_method_names = ["get"]

    def get_queryset(self):
        return Booking.objects.select_related("space", "host", "guest").order_by("-created_at")


class OperatorBookingDetailView(OperatorThrottleMixin, generics.RetrieveAPIView):
    serializer_class = OperatorBookingDetailSerializer
    permission_classes = [IsOperator, HasOperatorRole.with_roles(ALL_OPERATOR_ROLES)]
    lookup_field = "pk"
    http_method_names = ["get"]

    def get_queryset(self):
        events_qs = BookingEvent.objects.select_related("actor").order_by("created_at", "id")
        return Booking.objects.select_related("space", "host", "guest").prefetch_related(
            Prefetch("events", queryset=events_qs, to_attr="prefetched_events")
        )


class OperatorBookingStatusView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(SUPPORT_ROLES)]
    http_method_names = ["post"]

    def post(self, request, pk: int):
        booking = get_object_or_404(Booking, pk=pk)
        serializer = BookingStatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        old_status = booking.status
        reason = serializer.validated_data["reason"]

        booking = change_booking_status(
            booking,
            new_status=serializer.validated_data["status"],
            reason=reason,
            actor=request.user,
        )
        if booking.status != old_status:
            audit(
                actor=request.user,
                action="booking.status_change",
                entity_type=OperatorAuditEvent.EntityType.BOOKING,
                entity_id=booking.id,
                reason=reason,
                before={"status": old_status},
                after={"status": booking.status},
                request=request,
            )
        return Response(OperatorBookingDetailSerializer(booking).data)


class OperatorBookingRefundView(OperatorAPIView):
    permission_classes = [IsOperator, HasOperatorRole.with_roles(FINANCE_ROLES)]
    http_method_names = ["post"]

    def post(self, request, pk: int):
        serializer = BookingRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = process_refund(
            pk,
            refund_type=data["refund_type"],
            amount=data.get("amount"),
            reason=data["reason"],
            notes=data.get("notes", ""),
            actor=request.user,
            request=request,
        )
        return Response(result.as_dict(), status=status.HTTP_200_OK)
