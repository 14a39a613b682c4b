from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Space(models.Model):
    """A rentable space listed by a host."""

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="spaces",
    )
    name = models.CharField(max_length=140)
    category = models.CharField(max_length=64, blank=True, default="")
    city = models.CharField(max_length=60, blank=True, default="")
    hourly_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        default=0,
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} (host {self.host_id})"
