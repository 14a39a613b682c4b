from django.urls import path

from operator_bookings.api import (
    OperatorBookingDetailView,
    OperatorBookingListView,
    OperatorBookingRefundView,
    OperatorBookingStatusView,
)

app_name = "operator_bookings"

urlpatterns = [
    path("", OperatorBookingListView.as_view(), name="operator_booking_list"),
    path("<int:pk>/", OperatorBookingDetailView.as_view(), name="operator_booking_detail"),
    path("<int:pk>/status", OperatorBookingStatusView.as_view(), name="operator_booking_status"),
    path("<int:pk>/refund", OperatorBookingRefundView.as_view(), name="operator_booking_refund"),
]
