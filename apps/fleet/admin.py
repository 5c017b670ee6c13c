"""Admin registration for castles."""

from __future__ import annotations

from django.contrib import admin

from .models import Castle


@admin.register(Castle)
class CastleAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "theme",
        "size",
        "price",
        "maintenance_status",
        "maintenance_start_date",
        "maintenance_end_date",
    )
    list_filter = ("maintenance_status", "theme")
    search_fields = ("name", "theme")
    readonly_fields = ("created_at", "updated_at")
