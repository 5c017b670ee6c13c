"""Serializers for the booking domain.

Input serializers only parse types; business validation happens in the
command handlers so the API and service callers get the same rules.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Booking, BookingAuditEntry


class BookingSerializer(serializers.ModelSerializer):
    """Detailed booking representation."""

    castle_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_ref",
            "customer_name",
            "customer_email",
            "customer_phone",
            "customer_address",
            "castle_id",
            "castle_name",
            "date",
            "start_at",
            "end_at",
            "duration_hours",
            "payment_method",
            "total_price",
            "deposit",
            "notes",
            "status",
            "payment_status",
            "payment_date",
            "admin_payment_comment",
            "agreement_signed",
            "agreement_signed_at",
            "agreement_signed_by",
            "agreement_signed_method",
            "agreement_ip_address",
            "agreement_user_agent",
            "calendar_event_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingWriteSerializer(serializers.Serializer):
    """Fields accepted on create (all) and update (any subset)."""

    customer_name = serializers.CharField(max_length=120)
    customer_email = serializers.CharField(max_length=254)
    customer_phone = serializers.CharField(max_length=30)
    customer_address = serializers.CharField(required=False, allow_blank=True, default="")
    castle_id = serializers.IntegerField()
    date = serializers.DateField()
    start_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    end_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    duration_hours = serializers.DecimalField(
        max_digits=4, decimal_places=1, required=False, allow_null=True, default=None
    )
    payment_method = serializers.CharField(required=False, default=Booking.PaymentMethod.CASH)
    total_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True, default=None
    )
    deposit = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True, default=None
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    status = serializers.CharField(required=False, default=Booking.Status.PENDING)
    calendar_event_id = serializers.CharField(required=False, allow_blank=True, default="")


class StatusTransitionSerializer(serializers.Serializer):
    status = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ConfirmBookingSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AgreementSigningSerializer(serializers.Serializer):
    signed_by = serializers.CharField(allow_blank=True)
    method = serializers.CharField()
    ip_address = serializers.IPAddressField(required=False, allow_null=True, default=None)
    user_agent = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentStatusChangeSerializer(serializers.Serializer):
    payment_status = serializers.CharField()
    admin_comment = serializers.CharField(allow_blank=True, trim_whitespace=False)


class EmailEventSerializer(serializers.Serializer):
    event = serializers.CharField()
    email_type = serializers.CharField(required=False, default="agreement")
    details = serializers.DictField(required=False, default=dict)


class ConflictCheckSerializer(serializers.Serializer):
    castle_id = serializers.IntegerField()
    date = serializers.DateField()
    start_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    end_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    exclude_booking_id = serializers.IntegerField(required=False, allow_null=True, default=None)

    def validate(self, attrs):  # type: ignore
        start_at, end_at = attrs.get("start_at"), attrs.get("end_at")
        if bool(start_at) != bool(end_at):
            raise serializers.ValidationError("Start and end time must be given together.")
        if start_at and end_at and end_at <= start_at:
            raise serializers.ValidationError("End time must be after start time.")
        return attrs


class BookingAuditEntrySerializer(serializers.ModelSerializer):
    booking_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = BookingAuditEntry
        fields = [
            "id",
            "booking_id",
            "booking_ref",
            "timestamp",
            "action",
            "actor",
            "actor_details",
            "method",
            "details",
            "ip_address",
            "user_agent",
        ]
        read_only_fields = fields
