"""Integration tests for fleet API endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.fleet.models import Castle

User = get_user_model()


class CastleAPITests(APITestCase):
    def setUp(self) -> None:
        self.admin = User.objects.create_user(
            username="office",
            email="office@example.com",
            password="OfficePass123",
            is_staff=True,
        )
        self.castle = Castle.objects.create(
            name="Princess Palace",
            theme="Princess",
            size="15ft x 15ft",
            price=Decimal("75.00"),
        )
        self.client.force_authenticate(self.admin)
        self.list_url = reverse("castle-list")
        self.maintenance_url = reverse("castle-maintenance", args=[self.castle.pk])

    def test_staff_can_add_a_castle(self) -> None:
        payload = {
            "name": "Jungle Adventure",
            "theme": "Jungle",
            "size": "12ft x 18ft with slide",
            "price": "80.00",
            "maintenance_status": "out_of_service",
        }

        response = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        castle = Castle.objects.get(name="Jungle Adventure")
        # Maintenance only changes through the dedicated endpoint.
        self.assertEqual(castle.maintenance_status, Castle.MaintenanceStatus.AVAILABLE)

    def test_negative_price_is_rejected(self) -> None:
        response = self.client.post(self.list_url, {"name": "Bargain Bouncer", "price": "-1.00"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertIn("price", response.data)

    def test_list_filters_by_maintenance_status(self) -> None:
        Castle.objects.create(
            name="Under The Sea",
            maintenance_status=Castle.MaintenanceStatus.OUT_OF_SERVICE,
            maintenance_start_date=date(2025, 3, 1),
            maintenance_end_date=date(2025, 3, 31),
        )

        response = self.client.get(self.list_url, {"maintenance_status": "out_of_service"})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual([castle["name"] for castle in response.data], ["Under The Sea"])

    def test_maintenance_window_is_recorded(self) -> None:
        response = self.client.post(
            self.maintenance_url,
            {
                "maintenance_status": "maintenance",
                "maintenance_notes": "Seam repair",
                "maintenance_start_date": "2025-03-09",
                "maintenance_end_date": "2025-03-11",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["maintenance_status"], "maintenance")
        self.castle.refresh_from_db()
        self.assertTrue(self.castle.is_unavailable_on(date(2025, 3, 10)))
        self.assertFalse(self.castle.is_unavailable_on(date(2025, 3, 12)))

    def test_maintenance_requires_a_complete_window(self) -> None:
        missing_end = self.client.post(
            self.maintenance_url,
            {"maintenance_status": "maintenance", "maintenance_start_date": "2025-03-09"},
            format="json",
        )
        reversed_window = self.client.post(
            self.maintenance_url,
            {
                "maintenance_status": "out_of_service",
                "maintenance_start_date": "2025-03-11",
                "maintenance_end_date": "2025-03-09",
            },
            format="json",
        )

        self.assertEqual(missing_end.status_code, status.HTTP_400_BAD_REQUEST, missing_end.data)
        self.assertEqual(reversed_window.status_code, status.HTTP_400_BAD_REQUEST, reversed_window.data)
        self.assertIn("maintenance_end_date", reversed_window.data)
        self.castle.refresh_from_db()
        self.assertEqual(self.castle.maintenance_status, Castle.MaintenanceStatus.AVAILABLE)

    def test_returning_to_available_clears_the_window(self) -> None:
        self.client.post(
            self.maintenance_url,
            {
                "maintenance_status": "maintenance",
                "maintenance_notes": "Seam repair",
                "maintenance_start_date": "2025-03-09",
                "maintenance_end_date": "2025-03-11",
            },
            format="json",
        )

        response = self.client.post(self.maintenance_url, {"maintenance_status": "available"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertIsNone(response.data["maintenance_start_date"])
        self.assertEqual(response.data["maintenance_notes"], "")

    def test_non_staff_users_are_rejected(self) -> None:
        self.client.force_authenticate(User.objects.create_user(username="customer", password="CustomerPass123"))

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
