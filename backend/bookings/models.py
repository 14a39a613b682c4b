"""Database models for space bookings and their financial state."""

from __future__ import annotations

import secrets

from django.conf import settings
from django.db import models

from spaces.models import Space

MONEY = {"max_digits": 10, "decimal_places": 2}


def _generate_reference() -> str:
    return f"BK-{secrets.token_hex(4).upper()}"


class Booking(models.Model):
    """
    One reservation of a space and everything that happened to its money.

    Fee columns are nullable: NULL means "never captured" (a candidate for
    display backfill), which is different from an explicit 0.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "pending"
        CONFIRMED = "confirmed", "confirmed"
        ACTIVE = "active", "active"
        COMPLETED = "completed", "completed"
        CANCELLED = "cancelled", "cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "pending"
        PAID = "paid", "paid"
        REFUNDED = "refunded", "refunded"
        FAILED = "failed", "failed"

    class NetFeeConfidence(models.TextChoices):
        AUTHORITATIVE = "authoritative", "Authoritative"
        ESTIMATED = "estimated", "Estimated"

    reference = models.CharField(max_length=32, unique=True, blank=True)
    space = models.ForeignKey(
        Space,
        related_name="bookings",
        on_delete=models.CASCADE,
    )
    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="bookings_as_host",
        on_delete=models.CASCADE,
    )
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="bookings_as_guest",
        on_delete=models.CASCADE,
    )
    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    payment_status = models.CharField(
        max_length=16,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    currency = models.CharField(max_length=8, default="aud")

    base_amount = models.DecimalField(**MONEY, default=0)
    price = models.DecimalField(
        **MONEY,
        null=True,
        blank=True,
        help_text="Price shown to the guest at checkout, if captured.",
    )
    service_fee = models.DecimalField(**MONEY, null=True, blank=True)
    processing_fee = models.DecimalField(**MONEY, null=True, blank=True)
    commission_amount = models.DecimalField(
        **MONEY,
        null=True,
        blank=True,
        help_text="Host-side platform commission.",
    )
    total_paid = models.DecimalField(
        **MONEY,
        null=True,
        blank=True,
        help_text="Amount actually charged, captured at transaction time.",
    )
    is_international_card = models.BooleanField(default=False)

    refund_amount = models.DecimalField(**MONEY, null=True, blank=True)
    transfer_reversal_amount = models.DecimalField(**MONEY, null=True, blank=True)
    net_application_fee = models.DecimalField(**MONEY, null=True, blank=True)
    platform_earnings = models.DecimalField(**MONEY, null=True, blank=True)
    net_fee_confidence = models.CharField(
        max_length=16,
        choices=NetFeeConfidence.choices,
        blank=True,
        default="",
    )

    processor_payment_reference = models.CharField(max_length=255, blank=True, default="")
    processor_transfer_reference = models.CharField(max_length=255, blank=True, default="")
    processor_refund_reference = models.CharField(max_length=255, blank=True, default="")
    processor_transfer_reversal_reference = models.CharField(
        max_length=255, blank=True, default=""
    )

    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="bookings_status_created_idx"),
            models.Index(
                fields=["payment_status", "created_at"], name="bookings_paystat_created_idx"
            ),
            models.Index(fields=["host", "created_at"], name="bookings_host_created_idx"),
        ]

    def __str__(self) -> str:
        """Return a human-readable representation."""
        return f"Booking {self.reference or self.pk} for space {self.space_id} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = _generate_reference()
        super().save(*args, **kwargs)

    def is_terminal(self) -> bool:
        """Return True if the booking reached a terminal state."""
        return self.status in {
            self.Status.CANCELLED,
            self.Status.COMPLETED,
        }
