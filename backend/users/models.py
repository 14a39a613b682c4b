from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Marketplace account: guests, hosts and operator staff share one model."""

    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Optional E.164 formatted phone number.",
    )
    is_host = models.BooleanField(default=False)
    avatar_url = models.URLField(blank=True, default="")

    def display_name(self) -> str:
        full_name = (self.get_full_name() or "").strip()
        if full_name:
            return full_name
        return self.username or self.email or f"user-{self.pk}"
