from django.conf import settings
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from payments.fees import FeeRates

RATE = {"max_digits": 7, "decimal_places": 5}


class FeeConfig(models.Model):
    """
    Snapshot of the fractional fee rates. Exactly one row is active.

    Rows are never edited in place: saving a changed row inserts a new version
    and deactivates whatever was active. Superseded rows stay for audit.
    """

    service_rate = models.DecimalField(**RATE)
    partner_commission_rate = models.DecimalField(**RATE)
    processing_rate = models.DecimalField(**RATE)
    tax_rate = models.DecimalField(**RATE)
    is_active = models.BooleanField(default=True)
    description = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="fee_configs_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["is_active"],
                condition=Q(is_active=True),
                name="opset_fee_single_active",
            ),
        ]

    def __str__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"FeeConfig {self.pk} ({state})"

    def as_rates(self) -> FeeRates:
        return FeeRates(
            service_rate=self.service_rate,
            partner_commission_rate=self.partner_commission_rate,
            processing_rate=self.processing_rate,
            tax_rate=self.tax_rate,
        )

    def _has_rate_changes(self, existing: "FeeConfig") -> bool:
        return existing.as_rates() != self.as_rates() or existing.description != self.description

    def save(self, *args, **kwargs):
        from core.fee_settings import invalidate_fee_settings

        using = kwargs.get("using") or self._state.db or "default"
        if self.pk is not None:
            existing = type(self).objects.using(using).filter(pk=self.pk).first()
            if existing is not None:
                if not self._has_rate_changes(existing):
                    return
                self.pk = None
                self._state.adding = True
                kwargs.pop("force_update", None)
                kwargs.pop("update_fields", None)
                kwargs["force_insert"] = True

        self.is_active = True
        self.deactivated_at = None
        with transaction.atomic(using=using):
            type(self).objects.using(using).filter(is_active=True).update(
                is_active=False, deactivated_at=timezone.now()
            )
            super().save(*args, **kwargs)
        invalidate_fee_settings()
