from django.apps import AppConfig


class OperatorBookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "operator_bookings"
