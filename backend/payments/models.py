from django.conf import settings
from django.db import models


class EarningsLedgerEntry(models.Model):
    """
    Append-only record of money owed to a host for a booking.

    Refunds never edit an entry; they append a negative compensating one.
    """

    class Kind(models.TextChoices):
        EARNING = "earning", "Earning"
        REFUND_REVERSAL = "refund_reversal", "Refund reversal"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        AVAILABLE = "available", "Available"
        PAID = "paid", "Paid"
        REFUNDED = "refunded", "Refunded"

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="earnings_entries",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="earnings_entries",
    )
    kind = models.CharField(max_length=32, choices=Kind.choices, default=Kind.EARNING)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    fee_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    net_amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=8, default="aud")
    description = models.CharField(max_length=255, blank=True, default="")
    reverses = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversals",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["booking", "created_at"], name="payments_earn_booking_idx"),
            models.Index(fields=["host", "created_at"], name="payments_earn_host_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.host_id} {self.kind} {self.net_amount} {self.currency}"

    def save(self, *args, **kwargs):
        if self.pk is not None and not kwargs.get("force_insert"):
            raise ValueError("Earnings ledger entries are append-only.")
        super().save(*args, **kwargs)


class HostPayoutAccount(models.Model):
    """Stripe Connect account used to pay a host out."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payout_account",
    )
    stripe_account_id = models.CharField(max_length=255)
    payouts_enabled = models.BooleanField(default=False)
    charges_enabled = models.BooleanField(default=False)
    last_synced_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-last_synced_at", "user_id"]

    def __str__(self) -> str:
        return f"{self.user} - {self.stripe_account_id}"
