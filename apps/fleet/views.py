"""API views for the fleet domain."""

from __future__ import annotations

from rest_framework import permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from .models import Castle
from .serializers import CastleMaintenanceSerializer, CastleSerializer
from .services import update_maintenance


class CastleViewSet(viewsets.ModelViewSet):
    """CRUD over the castle fleet for staff users."""

    queryset = Castle.objects.all()
    serializer_class = CastleSerializer
    permission_classes = [permissions.IsAdminUser]
    filterset_fields = ["maintenance_status", "theme"]

    @action(detail=True, methods=["post"], serializer_class=CastleMaintenanceSerializer)
    def maintenance(self, request, pk=None):  # type: ignore
        castle: Castle = self.get_object()  # type: ignore
        serializer = CastleMaintenanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        update_maintenance(
            castle,
            data["maintenance_status"],
            notes=data["maintenance_notes"],
            start_date=data["maintenance_start_date"],
            end_date=data["maintenance_end_date"],
        )
        return Response(CastleSerializer(castle, context=self.get_serializer_context()).data)
