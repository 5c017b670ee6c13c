"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, BookingAuditEntry


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_ref",
        "castle_name",
        "customer_name",
        "date",
        "status",
        "payment_status",
        "agreement_signed",
        "total_price",
        "created_at",
    )
    list_filter = ("status", "payment_status", "agreement_signed", "date", "payment_method")
    search_fields = ("booking_ref", "customer_name", "customer_email", "castle_name")
    readonly_fields = (
        "booking_ref",
        "status",
        "payment_status",
        "created_at",
        "updated_at",
    )


@admin.register(BookingAuditEntry)
class BookingAuditEntryAdmin(admin.ModelAdmin):
    list_display = ("booking_ref", "action", "actor", "actor_details", "timestamp")
    list_filter = ("action", "actor")
    search_fields = ("booking_ref", "actor_details")

    def has_add_permission(self, request):  # type: ignore
        return False

    def has_change_permission(self, request, obj=None):  # type: ignore
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
