"""Booking domain models for the castle hire admin."""

from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import TimeWindow

from .domain.status import BookingStatus
from .exceptions import AuditTrailImmutableError


class Booking(models.Model):
    """A castle hire for one event date."""

    class Status(models.TextChoices):
        PENDING = BookingStatus.PENDING, _("Pending")
        CONFIRMED = BookingStatus.CONFIRMED, _("Confirmed")
        COMPLETED = BookingStatus.COMPLETED, _("Completed")
        EXPIRED = BookingStatus.EXPIRED, _("Expired")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Awaiting payment")
        DEPOSIT_PAID = "deposit_paid", _("Deposit paid")
        PAID_FULL = "paid_full", _("Paid in full")

    class PaymentMethod(models.TextChoices):
        CASH = "cash", _("Cash")
        CARD = "card", _("Card")
        BANK_TRANSFER = "bank_transfer", _("Bank transfer")
        ONLINE = "online", _("Online")
        OTHER = "other", _("Other")

    class AgreementMethod(models.TextChoices):
        EMAIL = "email", _("Signed from email link")
        MANUAL = "manual", _("Recorded manually")
        PHYSICAL = "physical", _("Signed on paper")
        ADMIN_OVERRIDE = "admin_override", _("Admin override")

    booking_ref = models.CharField(max_length=20, unique=True, editable=False)

    customer_name = models.CharField(max_length=120)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=30)
    customer_address = models.TextField(blank=True)

    # Castles may be removed from the fleet; the id and the name snapshot stay.
    castle = models.ForeignKey(
        "fleet.Castle",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        related_name="bookings",
    )
    castle_name = models.CharField(max_length=100)

    date = models.DateField()
    start_at = models.DateTimeField(null=True, blank=True)
    end_at = models.DateTimeField(null=True, blank=True)
    duration_hours = models.DecimalField(max_digits=4, decimal_places=1, default=Decimal("8.0"))

    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.CASH,
    )
    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    deposit = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_date = models.DateTimeField(null=True, blank=True)
    admin_payment_comment = models.TextField(blank=True)

    agreement_signed = models.BooleanField(default=False)
    agreement_signed_at = models.DateTimeField(null=True, blank=True)
    agreement_signed_by = models.CharField(max_length=255, blank=True)
    agreement_signed_method = models.CharField(
        max_length=20,
        choices=AgreementMethod.choices,
        blank=True,
    )
    agreement_ip_address = models.GenericIPAddressField(null=True, blank=True)
    agreement_user_agent = models.TextField(blank=True)

    calendar_event_id = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Identifier of the mirrored event in the external calendar."),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["castle", "date"],
                condition=~models.Q(status="expired"),
                name="booking_unique_active_castle_date",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(start_at__isnull=True)
                    | models.Q(end_at__isnull=True)
                    | models.Q(end_at__gt=models.F("start_at"))
                ),
                name="booking_valid_window",
            ),
            models.CheckConstraint(
                condition=models.Q(deposit__gte=0) & models.Q(deposit__lte=models.F("total_price")),
                name="booking_valid_deposit",
            ),
        ]
        indexes = [
            models.Index(fields=["castle", "date"], name="booking_castle_date_idx"),
            models.Index(fields=["status"], name="booking_status_idx"),
            models.Index(fields=["date"], name="booking_date_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.booking_ref} ({self.castle_name}, {self.date})"

    @property
    def window(self) -> TimeWindow:
        """Occupied period; date-only bookings take the whole day."""

        if self.start_at and self.end_at:
            return TimeWindow(self.start_at, self.end_at)
        return TimeWindow.full_day(self.date)

    @property
    def ends_at(self) -> datetime:
        """Moment after which a confirmed booking counts as finished."""

        if self.end_at:
            return self.end_at
        return datetime.combine(
            self.date,
            time(hour=settings.BOOKING_DEFAULT_END_HOUR),
            tzinfo=timezone.get_current_timezone(),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in BookingStatus.TERMINAL


class BookingAuditEntryQuerySet(models.QuerySet):
    """Audit rows only ever get inserted."""

    def update(self, **kwargs):  # type: ignore
        raise AuditTrailImmutableError()

    def delete(self):  # type: ignore
        raise AuditTrailImmutableError()


class BookingAuditEntry(models.Model):
    """One recorded action on a booking.

    Stored apart from the booking and without a database-level foreign key,
    so entries outlive a deleted booking.
    """

    class Action(models.TextChoices):
        BOOKING_CREATED = "booking_created", _("Booking created")
        STATUS_CHANGE = "status_change", _("Status changed")
        MANUAL_CONFIRMATION = "manual_confirmation", _("Confirmed manually")
        AGREEMENT_SIGNED = "agreement_signed", _("Agreement signed")
        PAYMENT_STATUS_CHANGE = "payment_status_change", _("Payment status changed")
        AGREEMENT_EMAIL_SENT = "agreement_email_sent", _("Agreement email sent")
        EMAIL_OPENED = "email_opened", _("Email opened")
        EMAIL_CLICKED = "email_clicked", _("Email link clicked")

    class Actor(models.TextChoices):
        CUSTOMER = "customer", _("Customer")
        ADMIN = "admin", _("Admin")
        SYSTEM = "system", _("System")

    booking = models.ForeignKey(
        Booking,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="audit_entries",
    )
    booking_ref = models.CharField(max_length=20)
    timestamp = models.DateTimeField(default=timezone.now)
    action = models.CharField(max_length=40, choices=Action.choices)
    actor = models.CharField(max_length=20, choices=Actor.choices)
    actor_details = models.CharField(max_length=255, blank=True)
    method = models.CharField(max_length=40, blank=True)
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)

    objects = BookingAuditEntryQuerySet.as_manager()

    class Meta:
        verbose_name = _("Booking audit entry")
        verbose_name_plural = _("Booking audit entries")
        ordering = ["id"]
        indexes = [
            models.Index(fields=["booking", "id"], name="audit_booking_order_idx"),
            models.Index(fields=["action", "timestamp"], name="audit_action_time_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.booking_ref} - {self.action} by {self.actor} at {self.timestamp}"

    def save(self, *args, **kwargs):  # type: ignore
        if not self._state.adding:
            raise AuditTrailImmutableError()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # type: ignore
        raise AuditTrailImmutableError()
