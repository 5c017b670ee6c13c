"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.uow import DjangoUnitOfWork

from .domain.events import BookingStatusChanged
from .models import Booking

logger = logging.getLogger(__name__)


def _confirmed_until(moment: datetime):
    """Confirmed bookings dated on or before the local day of ``moment``."""

    return Booking.objects.filter(
        status=Booking.Status.CONFIRMED,
        date__lte=timezone.localtime(moment).date(),
    ).order_by("date", "id")


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings(now: Optional[datetime] = None) -> dict:
    """
    Mark confirmed bookings as completed once their event is over.

    A booking ends at ``end_at`` when it has explicit times, otherwise at
    ``BOOKING_DEFAULT_END_HOUR`` on its date. The update is guarded on the
    status still being ``confirmed`` so a concurrent edit always wins.
    No audit entry is written; each completion is logged.

    Runs every 15 minutes through Celery Beat.

    Returns:
        dict: {"checked", "completed", "transitions", "errors"}
    """
    now = now or timezone.now()
    summary: dict = {"checked": 0, "completed": 0, "transitions": [], "errors": []}

    for booking in _confirmed_until(now):
        summary["checked"] += 1
        ended_at = booking.ends_at
        if ended_at > now:
            continue

        try:
            with DjangoUnitOfWork() as uow:
                updated = Booking.objects.filter(
                    pk=booking.pk,
                    status=Booking.Status.CONFIRMED,
                ).update(status=Booking.Status.COMPLETED, updated_at=timezone.now())
                if not updated:
                    continue
                uow.add_event(BookingStatusChanged(
                    aggregate_id=booking.pk,
                    booking_ref=booking.booking_ref,
                    previous_status=Booking.Status.CONFIRMED,
                    new_status=Booking.Status.COMPLETED,
                    actor="system",
                ))
        except Exception as e:
            logger.error(f"Error completing booking {booking.booking_ref}: {e}", exc_info=True)
            summary["errors"].append({"booking_id": booking.pk, "booking_ref": booking.booking_ref, "error": str(e)})
            continue

        summary["completed"] += 1
        summary["transitions"].append({
            "booking_id": booking.pk,
            "booking_ref": booking.booking_ref,
            "from": Booking.Status.CONFIRMED.value,
            "to": Booking.Status.COMPLETED.value,
            "ended_at": ended_at.isoformat(),
        })
        logger.info(f"Booking {booking.booking_ref} completed automatically (ended {ended_at.isoformat()})")

    if summary["completed"] > 0:
        logger.info(f"Completed {summary['completed']} of {summary['checked']} confirmed bookings")

    return summary


def upcoming_completions(hours_ahead: int = 24, now: Optional[datetime] = None) -> list[dict]:
    """Confirmed bookings that the sweeper will complete within ``hours_ahead``."""

    now = now or timezone.now()
    horizon = now + timedelta(hours=hours_ahead)
    upcoming = []

    for booking in _confirmed_until(horizon):
        ended_at = booking.ends_at
        if now < ended_at <= horizon:
            upcoming.append({
                "booking_id": booking.pk,
                "booking_ref": booking.booking_ref,
                "castle_name": booking.castle_name,
                "customer_name": booking.customer_name,
                "date": booking.date.isoformat(),
                "ends_at": ended_at.isoformat(),
                "hours_remaining": round((ended_at - now).total_seconds() / 3600, 1),
            })

    return upcoming
