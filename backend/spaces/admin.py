from django.contrib import admin

from .models import Space


@admin.register(Space)
class SpaceAdmin(admin.ModelAdmin):
    list_display = ("name", "host", "category", "city", "hourly_price", "is_active")
    list_filter = ("is_active", "category")
    search_fields = ("name", "host__username", "host__email")
