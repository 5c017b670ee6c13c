"""API views for the booking domain."""

from __future__ import annotations

import base64
import logging

from django.core.exceptions import ValidationError as DjangoValidationError  # type: ignore
from django.core.validators import validate_ipv46_address  # type: ignore
from django.http import HttpResponse  # type: ignore
from django.utils import timezone  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.domain.value_objects import TimeWindow

from .application.command_handlers import (
    IMMUTABLE_FIELDS,
    CreateBookingCommand,
    CreateBookingHandler,
    DeleteBookingCommand,
    DeleteBookingHandler,
    RecordAgreementSigningCommand,
    RecordAgreementSigningHandler,
    RecordEmailEventCommand,
    RecordEmailEventHandler,
    RecordPaymentStatusChangeCommand,
    RecordPaymentStatusChangeHandler,
    TransitionStatusCommand,
    TransitionStatusHandler,
    UpdateBookingCommand,
    UpdateBookingHandler,
    get_booking,
)
from .audit import trail_for
from .models import Booking
from .queries import get_booking_stats, query_bookings
from .reports import export_accounting_csv
from .serializers import (
    AgreementSigningSerializer,
    BookingAuditEntrySerializer,
    BookingSerializer,
    BookingWriteSerializer,
    ConfirmBookingSerializer,
    ConflictCheckSerializer,
    EmailEventSerializer,
    PaymentStatusChangeSerializer,
    StatusTransitionSerializer,
)
from .services import check_conflicts as find_castle_conflicts
from .tasks import complete_finished_bookings, upcoming_completions as preview_upcoming_completions

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
TRACKING_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
MAX_UPCOMING_HOURS = 24 * 7


def _valid_ip(value) -> str | None:  # type: ignore
    value = (value or "").strip()
    try:
        validate_ipv46_address(value)
    except DjangoValidationError:
        return None
    return value


def client_ip(request) -> str | None:  # type: ignore
    """First forwarded address if it parses, else the socket peer."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip = _valid_ip(forwarded.split(",")[0]) if forwarded else None
    return ip or _valid_ip(request.META.get("REMOTE_ADDR"))


def actor_name(request) -> str:  # type: ignore
    user = request.user
    return user.get_username() if user and user.is_authenticated else ""


class BookingViewSet(viewsets.ModelViewSet):
    """Booking lifecycle API for staff."""

    queryset = Booking.objects.all()
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAdminUser]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_object(self):  # type: ignore
        booking = get_booking(self.kwargs[self.lookup_field])
        self.check_object_permissions(self.request, booking)
        return booking

    def list(self, request, *args, **kwargs):  # type: ignore
        params = request.query_params
        result = query_bookings(
            filters=params,
            sort=params.get("sort", "date"),
            order=params.get("order", "desc"),
            page=params.get("page", 1),
            limit=params.get("limit"),
        )
        items = BookingSerializer(result.pop("items"), many=True).data
        return Response({"items": items, **result})

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = CreateBookingHandler().handle(
            CreateBookingCommand(**serializer.validated_data, actor_details=actor_name(request))
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        for name in IMMUTABLE_FIELDS.intersection(request.data.keys()):
            changes[name] = request.data[name]
        if "payment_status" in request.data:
            changes["payment_status"] = request.data["payment_status"]

        booking = UpdateBookingHandler().handle(
            UpdateBookingCommand(
                booking_id=kwargs["pk"],
                changes=changes,
                actor_details=actor_name(request),
            )
        )
        return Response(BookingSerializer(booking).data)

    def destroy(self, request, *args, **kwargs):  # type: ignore
        DeleteBookingHandler().handle(
            DeleteBookingCommand(booking_id=kwargs["pk"], actor_details=actor_name(request))
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], serializer_class=StatusTransitionSerializer)
    def transition(self, request, pk=None):  # type: ignore
        serializer = StatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = TransitionStatusHandler().handle(
            TransitionStatusCommand(
                booking_id=pk,
                target_status=serializer.validated_data["status"],
                actor_details=actor_name(request),
                reason=serializer.validated_data["reason"],
            )
        )
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["post"], serializer_class=ConfirmBookingSerializer)
    def confirm(self, request, pk=None):  # type: ignore
        serializer = ConfirmBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = TransitionStatusHandler().handle(
            TransitionStatusCommand(
                booking_id=pk,
                target_status=Booking.Status.CONFIRMED,
                actor_details=actor_name(request),
                reason=serializer.validated_data["notes"],
                manual_confirmation=True,
            )
        )
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["post"], serializer_class=AgreementSigningSerializer)
    def agreement(self, request, pk=None):  # type: ignore
        serializer = AgreementSigningSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = RecordAgreementSigningHandler().handle(
            RecordAgreementSigningCommand(
                booking_id=pk,
                signed_by=data["signed_by"],
                method=data["method"],
                ip_address=data["ip_address"] or client_ip(request),
                user_agent=data["user_agent"] or request.META.get("HTTP_USER_AGENT", ""),
            )
        )
        return Response(BookingSerializer(booking).data)

    @action(
        detail=True,
        methods=["post"],
        url_path="payment-status",
        serializer_class=PaymentStatusChangeSerializer,
    )
    def payment_status(self, request, pk=None):  # type: ignore
        serializer = PaymentStatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = RecordPaymentStatusChangeHandler().handle(
            RecordPaymentStatusChangeCommand(
                booking_id=pk,
                new_status=serializer.validated_data["payment_status"],
                admin_comment=serializer.validated_data["admin_comment"],
                actor_details=actor_name(request),
            )
        )
        return Response(BookingSerializer(booking).data)

    @action(
        detail=True,
        methods=["post"],
        url_path="email-events",
        serializer_class=EmailEventSerializer,
    )
    def email_events(self, request, pk=None):  # type: ignore
        serializer = EmailEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        entry = RecordEmailEventHandler().handle(
            RecordEmailEventCommand(
                booking_id=pk,
                event=data["event"],
                email_type=data["email_type"],
                details=data["details"] or {},
            )
        )
        return Response(BookingAuditEntrySerializer(entry).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="audit-trail")
    def audit_trail(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        entries = trail_for(booking.pk)
        return Response(BookingAuditEntrySerializer(entries, many=True).data)

    @action(
        detail=True,
        methods=["get"],
        url_path="track/open",
        permission_classes=[permissions.AllowAny],
        authentication_classes=[],
    )
    def track_open(self, request, pk=None):  # type: ignore
        """Tracking pixel embedded in emails; always answers with the image."""

        try:
            RecordEmailEventHandler().handle(
                RecordEmailEventCommand(
                    booking_id=pk,
                    event="opened",
                    email_type=request.query_params.get("type", "agreement"),
                    ip_address=client_ip(request),
                    user_agent=request.META.get("HTTP_USER_AGENT", ""),
                )
            )
        except Exception:
            logger.warning("Could not record email open for booking %s", pk, exc_info=True)

        response = HttpResponse(TRACKING_PIXEL, content_type="image/png")
        response["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        response["Pragma"] = "no-cache"
        return response

    @action(
        detail=False,
        methods=["post"],
        url_path="check-conflicts",
        serializer_class=ConflictCheckSerializer,
    )
    def check_conflicts(self, request):  # type: ignore
        serializer = ConflictCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data["start_at"] and data["end_at"]:
            window = TimeWindow(data["start_at"], data["end_at"])
        else:
            window = TimeWindow.full_day(data["date"])
        result = find_castle_conflicts(data["castle_id"], window, exclude_booking_id=data["exclude_booking_id"])
        return Response(result.to_dict())

    @action(detail=False, methods=["get"])
    def stats(self, request):  # type: ignore
        return Response(get_booking_stats(request.query_params))

    @action(detail=False, methods=["get"])
    def export(self, request):  # type: ignore
        """Accounting CSV for the same filters as the list (date range, status, payment status)."""
        filename = f"accounting-export-{timezone.localdate():%Y-%m-%d}.csv"
        response = HttpResponse(export_accounting_csv(request.query_params), content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

    @action(detail=False, methods=["post"], url_path="complete-finished")
    def complete_finished(self, request):  # type: ignore
        summary = complete_finished_bookings()
        return Response(summary)

    @action(detail=False, methods=["get"], url_path="upcoming-completions")
    def upcoming_completions(self, request):  # type: ignore
        try:
            hours = int(request.query_params.get("hours", 24))
        except ValueError:
            hours = 24
        hours = min(max(hours, 1), MAX_UPCOMING_HOURS)
        return Response({"hours_ahead": hours, "bookings": preview_upcoming_completions(hours_ahead=hours)})
