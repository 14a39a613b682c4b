from django.contrib import admin

from .models import FeeConfig


@admin.register(FeeConfig)
class FeeConfigAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "service_rate",
        "partner_commission_rate",
        "processing_rate",
        "tax_rate",
        "is_active",
        "created_at",
        "created_by",
    )
    list_filter = ("is_active",)
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    readonly_fields = ("is_active", "deactivated_at", "created_at")

    def save_model(self, request, obj, form, change):
        if getattr(request, "user", None) and request.user.is_authenticated:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
