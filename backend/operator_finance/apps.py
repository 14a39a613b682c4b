from django.apps import AppConfig


class OperatorFinanceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "operator_finance"
