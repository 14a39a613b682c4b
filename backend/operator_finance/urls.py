from django.urls import path

from operator_finance.api import (
    CommissionBookingsView,
    CommissionExportView,
    CommissionReconcileView,
    CommissionSummaryView,
    HostBalanceView,
)

app_name = "operator_finance"

urlpatterns = [
    path("summary/", CommissionSummaryView.as_view(), name="operator_commission_summary"),
    path("bookings/", CommissionBookingsView.as_view(), name="operator_commission_bookings"),
    path("export.csv", CommissionExportView.as_view(), name="operator_commission_export"),
    path("reconcile/", CommissionReconcileView.as_view(), name="operator_commission_reconcile"),
    path(
        "hosts/<int:host_id>/balance/",
        HostBalanceView.as_view(),
        name="operator_host_balance",
    ),
]
