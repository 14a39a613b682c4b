from django.conf import settings
from django.db import models


class Notification(models.Model):
    """In-app notification shown to a guest or host."""

    class Type(models.TextChoices):
        REFUND = "refund", "Refund"
        BOOKING_STATUS = "booking_status", "Booking status"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    type = models.CharField(max_length=32, choices=Type.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["user", "is_read", "created_at"], name="notif_user_read_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.type}:{self.title} -> {self.user_id}"
