"""Tests for fleet management commands and the maintenance service."""

from __future__ import annotations

from datetime import date
from io import StringIO

import pytest
from django.core.exceptions import ValidationError
from django.core.management import call_command

from apps.fleet.management.commands.seed_castles import DEFAULT_FLEET
from apps.fleet.models import Castle
from apps.fleet.services import update_maintenance

pytestmark = pytest.mark.django_db


def test_seed_creates_default_fleet_once():
    out = StringIO()

    call_command("seed_castles", stdout=out)
    call_command("seed_castles", stdout=out)

    assert Castle.objects.count() == len(DEFAULT_FLEET)
    assert "nothing to do" in out.getvalue()


def test_seed_with_force_only_adds_missing_castles(castle):
    call_command("seed_castles", "--force", stdout=StringIO())

    assert Castle.objects.filter(name="Princess Palace").count() == 1
    assert Castle.objects.count() == len(DEFAULT_FLEET)


def test_status_without_window_blocks_every_date(castle):
    castle.maintenance_status = Castle.MaintenanceStatus.OUT_OF_SERVICE
    castle.save()

    assert castle.is_unavailable_on(date(2030, 1, 1))


def test_update_maintenance_rejects_unknown_status(castle):
    with pytest.raises(ValidationError):
        update_maintenance(castle, "on_holiday", start_date=date(2025, 3, 1), end_date=date(2025, 3, 2))
