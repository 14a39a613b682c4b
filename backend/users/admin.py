from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone", "is_host", "is_staff", "is_active")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("phone", "is_host", "avatar_url")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Marketplace", {"fields": ("is_host",)}),
    )
