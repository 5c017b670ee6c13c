"""Fleet models for the castle hire admin."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Castle(models.Model):
    """A bouncy castle available for hire."""

    class MaintenanceStatus(models.TextChoices):
        AVAILABLE = "available", _("Available")
        MAINTENANCE = "maintenance", _("Under maintenance")
        OUT_OF_SERVICE = "out_of_service", _("Out of service")

    name = models.CharField(max_length=100, unique=True)
    theme = models.CharField(max_length=100, blank=True)
    size = models.CharField(max_length=50, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    description = models.TextField(blank=True)
    image_url = models.CharField(
        max_length=500,
        blank=True,
        help_text=_("Reference to the image in external blob storage."),
    )
    maintenance_status = models.CharField(
        max_length=20,
        choices=MaintenanceStatus.choices,
        default=MaintenanceStatus.AVAILABLE,
    )
    maintenance_notes = models.TextField(blank=True)
    maintenance_start_date = models.DateField(null=True, blank=True)
    maintenance_end_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Castle")
        verbose_name_plural = _("Castles")
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(maintenance_start_date__isnull=True)
                    | models.Q(maintenance_end_date__isnull=True)
                    | models.Q(maintenance_end_date__gte=models.F("maintenance_start_date"))
                ),
                name="castle_valid_maintenance_window",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    def is_unavailable_on(self, day: date) -> bool:
        """True when a maintenance window covering ``day`` is in force."""

        if self.maintenance_status == self.MaintenanceStatus.AVAILABLE:
            return False
        start, end = self.maintenance_start_date, self.maintenance_end_date
        if start is None or end is None:
            # Status set without a window blocks every date.
            return True
        return start <= day <= end
