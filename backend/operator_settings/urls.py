from django.urls import path

from operator_settings.api import OperatorFeeConfigHistoryView, OperatorFeeConfigView

app_name = "operator_settings"

urlpatterns = [
    path("fee-config/", OperatorFeeConfigView.as_view(), name="operator_fee_config"),
    path(
        "fee-config/history/",
        OperatorFeeConfigHistoryView.as_view(),
        name="operator_fee_config_history",
    ),
]
