from django.urls import include, path

from operator_core.api import OperatorAuditEventListView, OperatorMeView

urlpatterns = [
    path("me/", OperatorMeView.as_view(), name="operator_me"),
    path("audit-events/", OperatorAuditEventListView.as_view(), name="operator_audit_events"),
    path("", include("operator_settings.urls")),
    path("bookings/", include("operator_bookings.urls")),
    path("commission/", include("operator_finance.urls")),
]
