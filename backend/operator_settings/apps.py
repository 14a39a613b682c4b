from django.apps import AppConfig


class OperatorSettingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "operator_settings"
