"""URL routing for the fleet domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import CastleViewSet

router = DefaultRouter()
router.register(r"", CastleViewSet, basename="castle")

urlpatterns = [
    path("", include(router.urls)),
]
