"""Domain services for fleet maintenance."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.core.exceptions import ValidationError  # type: ignore
from django.db import transaction  # type: ignore

from .models import Castle

logger = logging.getLogger(__name__)


@transaction.atomic
def update_maintenance(
    castle: Castle,
    status: str,
    notes: str = "",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Castle:
    """Put a castle into (or take it out of) maintenance.

    Any status other than ``available`` needs a complete window with
    ``start_date <= end_date``. Setting ``available`` clears the window.
    """

    if status not in Castle.MaintenanceStatus.values:
        raise ValidationError({"maintenance_status": f"Unknown maintenance status '{status}'."})

    if status == Castle.MaintenanceStatus.AVAILABLE:
        notes, start_date, end_date = "", None, None
    else:
        if start_date is None or end_date is None:
            raise ValidationError(
                "Maintenance start and end dates are required when a castle is taken out of service."
            )
        if start_date > end_date:
            raise ValidationError({"maintenance_end_date": "End date must not be before start date."})

    previous = castle.maintenance_status
    castle.maintenance_status = status
    castle.maintenance_notes = notes
    castle.maintenance_start_date = start_date
    castle.maintenance_end_date = end_date
    castle.save(
        update_fields=[
            "maintenance_status",
            "maintenance_notes",
            "maintenance_start_date",
            "maintenance_end_date",
            "updated_at",
        ]
    )
    logger.info(
        "Castle %s maintenance status %s -> %s (%s - %s)",
        castle.pk,
        previous,
        status,
        start_date,
        end_date,
    )
    return castle
