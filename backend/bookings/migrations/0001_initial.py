import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=10, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("spaces", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("reference", models.CharField(blank=True, max_length=32, unique=True)),
                ("start_time", models.DateTimeField(blank=True, null=True)),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "pending"),
                            ("confirmed", "confirmed"),
                            ("active", "active"),
                            ("completed", "completed"),
                            ("cancelled", "cancelled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "pending"),
                            ("paid", "paid"),
                            ("refunded", "refunded"),
                            ("failed", "failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("currency", models.CharField(default="aud", max_length=8)),
                ("base_amount", _money(default=0)),
                (
                    "price",
                    _money(
                        blank=True,
                        null=True,
                        help_text="Price shown to the guest at checkout, if captured.",
                    ),
                ),
                ("service_fee", _money(blank=True, null=True)),
                ("processing_fee", _money(blank=True, null=True)),
                (
                    "commission_amount",
                    _money(blank=True, null=True, help_text="Host-side platform commission."),
                ),
                (
                    "total_paid",
                    _money(
                        blank=True,
                        null=True,
                        help_text="Amount actually charged, captured at transaction time.",
                    ),
                ),
                ("is_international_card", models.BooleanField(default=False)),
                ("refund_amount", _money(blank=True, null=True)),
                ("transfer_reversal_amount", _money(blank=True, null=True)),
                ("net_application_fee", _money(blank=True, null=True)),
                ("platform_earnings", _money(blank=True, null=True)),
                (
                    "net_fee_confidence",
                    models.CharField(
                        blank=True,
                        choices=[("authoritative", "Authoritative"), ("estimated", "Estimated")],
                        default="",
                        max_length=16,
                    ),
                ),
                (
                    "processor_payment_reference",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "processor_transfer_reference",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "processor_refund_reference",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "processor_transfer_reversal_reference",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "guest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings_as_guest",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "host",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings_as_host",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "space",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to="spaces.space",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="bookings_status_created_idx"
                    ),
                    models.Index(
                        fields=["payment_status", "created_at"],
                        name="bookings_paystat_created_idx",
                    ),
                    models.Index(fields=["host", "created_at"], name="bookings_host_created_idx"),
                ],
            },
        ),
    ]
