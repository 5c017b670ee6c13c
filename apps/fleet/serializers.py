"""Serializers for the fleet domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Castle


class CastleSerializer(serializers.ModelSerializer):
    """Castle details.

    Maintenance fields are read-only here; they change through the
    dedicated maintenance endpoint so the window rules always apply.
    """

    class Meta:
        model = Castle
        fields = [
            "id",
            "name",
            "theme",
            "size",
            "price",
            "description",
            "image_url",
            "maintenance_status",
            "maintenance_notes",
            "maintenance_start_date",
            "maintenance_end_date",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "maintenance_status",
            "maintenance_notes",
            "maintenance_start_date",
            "maintenance_end_date",
            "created_at",
            "updated_at",
        ]

    def validate_price(self, value):  # type: ignore
        if value < 0:
            raise serializers.ValidationError("Price must not be negative.")
        return value


class CastleMaintenanceSerializer(serializers.Serializer):
    maintenance_status = serializers.ChoiceField(choices=Castle.MaintenanceStatus.choices)
    maintenance_notes = serializers.CharField(required=False, allow_blank=True, default="")
    maintenance_start_date = serializers.DateField(required=False, allow_null=True, default=None)
    maintenance_end_date = serializers.DateField(required=False, allow_null=True, default=None)
