"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- CreateBookingCommand: Create a new booking
- UpdateBookingCommand: Change some fields of a booking
- DeleteBookingCommand: Hard-delete a booking
- TransitionStatusCommand: Move a booking along the status machine
- RecordAgreementSigningCommand: Mark the hire agreement as signed
- RecordPaymentStatusChangeCommand: Change payment status with a comment
- RecordEmailEventCommand: Track sent/opened/clicked emails
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional
import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.utils import timezone

from shared.application.retry import RetryPolicy, persistence_guard
from shared.application.uow import DjangoUnitOfWork
from shared.domain.value_objects import TimeWindow
from apps.bookings import audit
from apps.bookings.domain.events import (
    AgreementSigned,
    BookingCreated,
    BookingDeleted,
    BookingStatusChanged,
    PaymentStatusChanged,
)
from apps.bookings.domain.status import BookingStatus, ensure_transition, normalize_status
from apps.bookings.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingValidationError,
    ReferenceAllocationError,
)
from apps.bookings.models import Booking, BookingAuditEntry
from apps.bookings.references import ReferenceCollision, allocate_reference
from apps.bookings.services import ensure_castle_is_available, is_castle_date_taken
from apps.fleet.models import Castle

logger = logging.getLogger(__name__)

Actor = BookingAuditEntry.Actor

CREATABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

UPDATABLE_FIELDS = {
    "customer_name",
    "customer_email",
    "customer_phone",
    "customer_address",
    "castle_id",
    "date",
    "start_at",
    "end_at",
    "duration_hours",
    "payment_method",
    "total_price",
    "deposit",
    "notes",
    "status",
    "calendar_event_id",
}
IMMUTABLE_FIELDS = {"id", "booking_ref", "created_at"}
WINDOW_FIELDS = {"castle_id", "date", "start_at", "end_at"}


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    Admin-initiated bookings may start directly in ``confirmed``.
    """
    customer_name: str
    customer_email: str
    customer_phone: str
    castle_id: int
    date: date
    customer_address: str = ''
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    duration_hours: Optional[Decimal] = None
    payment_method: str = Booking.PaymentMethod.CASH
    total_price: Optional[Decimal] = None
    deposit: Optional[Decimal] = None
    notes: str = ''
    status: str = BookingStatus.PENDING
    calendar_event_id: str = ''
    actor: str = Actor.ADMIN
    actor_details: str = ''


@dataclass
class UpdateBookingCommand:
    """Command to change a subset of booking fields"""
    booking_id: int
    changes: Dict[str, Any] = field(default_factory=dict)
    actor: str = Actor.ADMIN
    actor_details: str = ''


@dataclass
class DeleteBookingCommand:
    booking_id: int
    actor_details: str = ''


@dataclass
class TransitionStatusCommand:
    """Command to move a booking to another status"""
    booking_id: int
    target_status: str
    actor: str = Actor.ADMIN
    actor_details: str = ''
    reason: str = ''
    manual_confirmation: bool = False


@dataclass
class RecordAgreementSigningCommand:
    booking_id: int
    signed_by: str
    method: str
    ip_address: Optional[str] = None
    user_agent: str = ''
    actor: Optional[str] = None


@dataclass
class RecordPaymentStatusChangeCommand:
    """Command to change payment status; the comment is mandatory"""
    booking_id: int
    new_status: str
    admin_comment: str
    actor_details: str = ''


@dataclass
class RecordEmailEventCommand:
    booking_id: int
    event: str
    email_type: str = 'agreement'
    ip_address: Optional[str] = None
    user_agent: str = ''
    details: Dict[str, Any] = field(default_factory=dict)


# ===== Helpers =====

def get_booking(booking_id, lock: bool = False) -> Booking:
    queryset = Booking.objects.all()
    if lock:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError, TypeError):
        raise BookingNotFoundError(booking_id)


def _to_decimal(value, field_name: str, errors: Dict[str, list]) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        number = None
    if number is None or not number.is_finite():
        errors.setdefault(field_name, []).append("A valid number is required.")
        return None
    return number


def derive_deposit(total_price: Decimal) -> Decimal:
    percentage = Decimal(settings.BOOKING_DEPOSIT_PERCENTAGE) / Decimal(100)
    return (total_price * percentage).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def build_window(day: date, start_at: Optional[datetime], end_at: Optional[datetime]) -> TimeWindow:
    if start_at and end_at:
        return TimeWindow(start_at, end_at)
    return TimeWindow.full_day(day)


class BookingValidator:
    """
    Checks booking field values before any write

    Collects every problem and raises a single ``BookingValidationError``.
    """

    def __init__(self):
        self.errors: Dict[str, list] = {}

    def add(self, field_name: str, message: str):
        self.errors.setdefault(field_name, []).append(message)

    def raise_if_invalid(self):
        if self.errors:
            first_field = next(iter(self.errors))
            raise BookingValidationError(self.errors[first_field][0], errors=self.errors)

    def customer(self, name, email, phone):
        if not name or len(str(name).strip()) < 2:
            self.add("customer_name", "Customer name must be at least 2 characters.")
        if not email:
            self.add("customer_email", "Customer email is required.")
        else:
            try:
                validate_email(email)
            except DjangoValidationError:
                self.add("customer_email", "Enter a valid email address.")
        digits = [char for char in str(phone or '') if char.isdigit()]
        if len(digits) < 10:
            self.add("customer_phone", "Enter a valid phone number.")

    def castle(self, castle_id) -> Optional[Castle]:
        if castle_id in (None, ''):
            self.add("castle_id", "A castle is required.")
            return None
        castle = Castle.objects.filter(pk=castle_id).first() if str(castle_id).isdigit() else None
        if castle is None:
            self.add("castle_id", f"Castle {castle_id} does not exist.")
        return castle

    def window(self, day, start_at, end_at, duration_hours) -> Optional[Decimal]:
        """Validate the event window and return the duration in hours."""
        if not isinstance(day, date) or isinstance(day, datetime):
            self.add("date", "A valid event date is required.")
            return None

        if bool(start_at) != bool(end_at):
            self.add("end_at", "Start and end time must be given together.")
            return None

        if start_at and end_at:
            if timezone.is_naive(start_at) or timezone.is_naive(end_at):
                self.add("start_at", "Start and end time must include a timezone.")
                return None
            if end_at <= start_at:
                self.add("end_at", "End time must be after start time.")
                return None
            if timezone.localtime(start_at).date() != day:
                self.add("start_at", "Start time must fall on the event date.")
            hours = Decimal(str(round(TimeWindow(start_at, end_at).duration_hours, 1)))
        elif duration_hours in (None, ''):
            hours = Decimal(settings.BOOKING_DEFAULT_DURATION_HOURS)
        else:
            hours = _to_decimal(duration_hours, "duration_hours", self.errors)
            if hours is None:
                return None

        if hours < settings.BOOKING_MIN_DURATION_HOURS:
            self.add("duration_hours", f"Minimum booking duration is {settings.BOOKING_MIN_DURATION_HOURS} hours.")
        elif hours > settings.BOOKING_MAX_DURATION_HOURS:
            self.add("duration_hours", f"Maximum booking duration is {settings.BOOKING_MAX_DURATION_HOURS} hours.")
        return hours

    def money(self, total_price, deposit) -> tuple:
        total = _to_decimal(total_price, "total_price", self.errors)
        deposit_value = _to_decimal(deposit, "deposit", self.errors)
        if total is not None and total < 0:
            self.add("total_price", "Total price must not be negative.")
        if deposit_value is not None:
            if deposit_value < 0:
                self.add("deposit", "Deposit must not be negative.")
            elif total is not None and deposit_value > total:
                self.add("deposit", "Deposit cannot exceed total price.")
        return total, deposit_value

    def payment_method(self, value):
        if value not in Booking.PaymentMethod.values:
            self.add("payment_method", f"Unknown payment method '{value}'.")


def _save_checked(booking: Booking, **save_kwargs):
    """
    Save inside a savepoint and translate constraint failures

    The partial unique index on (castle, date) turns a lost race into
    ``BookingConflictError``.
    """
    try:
        with transaction.atomic():
            booking.save(**save_kwargs)
    except IntegrityError as exc:
        if booking.castle_id and is_castle_date_taken(
            booking.castle_id, booking.date, exclude_booking_id=booking.pk
        ):
            raise BookingConflictError(
                f"{booking.castle_name} is already booked on {booking.date:%d/%m/%Y}."
            ) from exc
        raise


# ===== Command Handlers =====

class CreateBookingHandler:
    """
    Handler for CreateBooking command

    Steps, strictly in order and inside one transaction:
    1. Validate input
    2. Conflict check (locks candidate rows where supported)
    3. Allocate reference and INSERT in a savepoint
       - unique violation on the reference: allocate again (gap scan)
       - unique violation on (castle, date): BookingConflictError
    4. Append the ``booking_created`` audit entry
    5. Publish BookingCreated after commit
    """

    def __init__(self, retry_policy: Optional[RetryPolicy] = None):
        self.retry_policy = retry_policy or RetryPolicy(
            name="allocate_reference",
            attempts=settings.BOOKING_REFERENCE_RETRY_ATTEMPTS,
            base_delay=0.01,
            max_delay=0.1,
            retry_on=(ReferenceCollision,),
        )

    def handle(self, command: CreateBookingCommand) -> Booking:
        logger.info(
            "Creating booking for castle %s on %s (%s)",
            command.castle_id,
            command.date,
            command.customer_email,
        )

        booking = self._build(command)

        with persistence_guard("create_booking", target=command.castle_id):
            with DjangoUnitOfWork() as uow:
                ensure_castle_is_available(booking.castle_id, booking.window)
                self._insert(booking)
                audit.record_booking_created(booking, command.actor, command.actor_details)
                uow.add_event(BookingCreated(
                    aggregate_id=booking.pk,
                    booking_ref=booking.booking_ref,
                    castle_id=booking.castle_id,
                    date=booking.date,
                    status=booking.status,
                    total_price=booking.total_price,
                ))

        logger.info("Booking created: %s (ID: %s)", booking.booking_ref, booking.pk)
        return booking

    def _build(self, command: CreateBookingCommand) -> Booking:
        validator = BookingValidator()
        validator.customer(command.customer_name, command.customer_email, command.customer_phone)
        castle = validator.castle(command.castle_id)
        hours = validator.window(command.date, command.start_at, command.end_at, command.duration_hours)
        validator.payment_method(command.payment_method)

        total_price = command.total_price
        if total_price is None and castle is not None:
            total_price = castle.price
        if total_price is None:
            validator.add("total_price", "Total price is required.")
        total, deposit = validator.money(total_price, command.deposit)

        try:
            status = normalize_status(command.status or BookingStatus.PENDING)
        except BookingValidationError:
            validator.add("status", f"Unknown booking status '{command.status}'.")
        else:
            if status not in CREATABLE_STATUSES:
                validator.add("status", "New bookings must be pending or confirmed.")

        validator.raise_if_invalid()

        if deposit is None:
            deposit = derive_deposit(total)

        return Booking(
            customer_name=command.customer_name.strip(),
            customer_email=command.customer_email.strip(),
            customer_phone=command.customer_phone.strip(),
            customer_address=command.customer_address,
            castle=castle,
            castle_name=castle.name,
            date=command.date,
            start_at=command.start_at,
            end_at=command.end_at,
            duration_hours=hours,
            payment_method=command.payment_method,
            total_price=total,
            deposit=deposit,
            notes=command.notes,
            status=status,
            calendar_event_id=command.calendar_event_id,
        )

    def _insert(self, booking: Booking) -> Booking:
        def attempt(number: int) -> Booking:
            booking.booking_ref = allocate_reference(number)
            try:
                _save_checked(booking, force_insert=True)
            except IntegrityError as exc:
                if Booking.objects.filter(booking_ref=booking.booking_ref).exists():
                    raise ReferenceCollision(booking.booking_ref) from exc
                raise BookingValidationError("Booking data violates a store constraint.") from exc
            return booking

        try:
            return self.retry_policy.run(attempt, target=booking.castle_id)
        except ReferenceCollision as exc:
            logger.error(
                "Could not allocate a booking reference after %d attempts",
                self.retry_policy.attempts,
            )
            raise ReferenceAllocationError() from exc


class UpdateBookingHandler:
    """
    Handler for partial booking updates

    Castle or window changes re-run the conflict check against all other
    bookings; status changes go through the status machine. Payment
    status has its own command because it needs a comment.
    """

    def handle(self, command: UpdateBookingCommand) -> Booking:
        changes = dict(command.changes)
        if "castle" in changes and "castle_id" not in changes:
            changes["castle_id"] = changes.pop("castle")

        immutable = IMMUTABLE_FIELDS.intersection(changes)
        if immutable:
            raise BookingValidationError(
                f"Field(s) cannot be changed: {', '.join(sorted(immutable))}.",
                errors={name: ["This field cannot be changed."] for name in sorted(immutable)},
            )
        if "payment_status" in changes:
            raise BookingValidationError(
                "Payment status changes require an admin comment.",
                errors={"payment_status": ["Use the payment status operation."]},
            )
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise BookingValidationError(
                f"Unknown field(s): {', '.join(sorted(unknown))}.",
                errors={name: ["Unknown field."] for name in sorted(unknown)},
            )

        with persistence_guard("update_booking", target=command.booking_id):
            with DjangoUnitOfWork() as uow:
                booking = get_booking(command.booking_id, lock=True)
                previous_status = booking.status
                target_status = self._apply(booking, changes)

                if target_status is not None:
                    ensure_transition(previous_status, target_status)
                    booking.status = target_status

                # Expired bookings hold no claim on the castle.
                blocks_castle = booking.status not in settings.BOOKING_CONFLICT_EXCLUDED_STATUSES
                if blocks_castle and WINDOW_FIELDS.intersection(changes):
                    ensure_castle_is_available(
                        booking.castle_id, booking.window, exclude_booking_id=booking.pk
                    )

                _save_checked(booking)

                if booking.status != previous_status:
                    audit.record_status_change(
                        booking, previous_status, booking.status, command.actor, command.actor_details
                    )
                    uow.add_event(BookingStatusChanged(
                        aggregate_id=booking.pk,
                        booking_ref=booking.booking_ref,
                        previous_status=previous_status,
                        new_status=booking.status,
                        actor=command.actor,
                    ))

        logger.info("Booking %s updated (%s)", booking.booking_ref, ", ".join(sorted(changes)))
        return booking

    def _apply(self, booking: Booking, changes: Dict[str, Any]) -> Optional[str]:
        """Validate and copy changes onto the booking; return the requested status."""
        validator = BookingValidator()

        customer = {
            name: changes.get(name, getattr(booking, name))
            for name in ("customer_name", "customer_email", "customer_phone")
        }
        if customer.keys() & changes.keys():
            validator.customer(customer["customer_name"], customer["customer_email"], customer["customer_phone"])

        castle = None
        if "castle_id" in changes:
            castle = validator.castle(changes["castle_id"])

        hours = None
        if {"date", "start_at", "end_at", "duration_hours"} & changes.keys():
            day = changes.get("date", booking.date)
            start_at = changes.get("start_at", booking.start_at)
            end_at = changes.get("end_at", booking.end_at)
            # Moving to another date drops times that belonged to the old one.
            if "date" in changes and "start_at" not in changes and "end_at" not in changes:
                start_at = end_at = None
            duration = changes.get("duration_hours", booking.duration_hours)
            hours = validator.window(day, start_at, end_at, duration)
            changes = {**changes, "start_at": start_at, "end_at": end_at}

        if "payment_method" in changes:
            validator.payment_method(changes["payment_method"])

        total, deposit = None, None
        if {"total_price", "deposit"} & changes.keys():
            total, deposit = validator.money(
                changes.get("total_price", booking.total_price),
                changes.get("deposit", booking.deposit),
            )

        target_status = None
        if "status" in changes:
            try:
                target_status = normalize_status(changes["status"])
            except BookingValidationError as exc:
                validator.add("status", exc.message)

        validator.raise_if_invalid()

        for name in ("customer_name", "customer_email", "customer_phone", "customer_address",
                     "payment_method", "notes", "calendar_event_id"):
            if name in changes:
                value = changes[name]
                setattr(booking, name, value.strip() if isinstance(value, str) else value)
        if castle is not None:
            booking.castle = castle
            booking.castle_name = castle.name
        if hours is not None:
            booking.date = changes.get("date", booking.date)
            booking.start_at = changes["start_at"]
            booking.end_at = changes["end_at"]
            booking.duration_hours = hours
        if total is not None:
            booking.total_price = total
        if deposit is not None:
            booking.deposit = deposit
        return target_status


class DeleteBookingHandler:
    """Unconditional hard delete; audit entries stay behind"""

    def handle(self, command: DeleteBookingCommand) -> None:
        with persistence_guard("delete_booking", target=command.booking_id):
            with DjangoUnitOfWork() as uow:
                booking = get_booking(command.booking_id, lock=True)
                booking_id, booking_ref = booking.pk, booking.booking_ref
                calendar_event_id = booking.calendar_event_id
                booking.delete()
                uow.add_event(BookingDeleted(
                    aggregate_id=booking_id,
                    booking_ref=booking_ref,
                    calendar_event_id=calendar_event_id,
                ))

        logger.info("Booking %s (ID: %s) deleted by %s", booking_ref, booking_id, command.actor_details or "admin")


class TransitionStatusHandler:
    """
    Handler for explicit status changes

    Re-applying the current status succeeds without writing anything.
    """

    def handle(self, command: TransitionStatusCommand) -> Booking:
        target = normalize_status(command.target_status)

        with persistence_guard("transition_status", target=command.booking_id):
            with DjangoUnitOfWork() as uow:
                booking = get_booking(command.booking_id, lock=True)
                previous_status = booking.status
                ensure_transition(previous_status, target)

                if previous_status == target:
                    logger.debug("Booking %s already %s", booking.booking_ref, target)
                    return booking

                booking.status = target
                booking.save(update_fields=["status", "updated_at"])

                if command.manual_confirmation and target == BookingStatus.CONFIRMED:
                    audit.record_manual_confirmation(
                        booking, previous_status, command.actor_details, notes=command.reason
                    )
                else:
                    audit.record_status_change(
                        booking,
                        previous_status,
                        target,
                        command.actor,
                        command.actor_details,
                        reason=command.reason,
                    )
                uow.add_event(BookingStatusChanged(
                    aggregate_id=booking.pk,
                    booking_ref=booking.booking_ref,
                    previous_status=previous_status,
                    new_status=target,
                    actor=command.actor,
                ))

        logger.info("Booking %s status %s -> %s", booking.booking_ref, previous_status, target)
        return booking


class RecordAgreementSigningHandler:
    """Handler for recording a signed hire agreement"""

    def handle(self, command: RecordAgreementSigningCommand) -> Booking:
        validator = BookingValidator()
        if not command.signed_by or not command.signed_by.strip():
            validator.add("signed_by", "Signer identity is required.")
        if command.method not in Booking.AgreementMethod.values:
            validator.add("method", f"Unknown signing method '{command.method}'.")
        validator.raise_if_invalid()

        actor = command.actor or (
            Actor.CUSTOMER if command.method == Booking.AgreementMethod.EMAIL else Actor.ADMIN
        )

        with persistence_guard("record_agreement_signing", target=command.booking_id):
            with DjangoUnitOfWork() as uow:
                booking = get_booking(command.booking_id, lock=True)
                if booking.agreement_signed:
                    raise BookingValidationError(
                        f"Agreement for booking {booking.booking_ref} is already signed.",
                        errors={"agreement_signed": ["Agreement already signed."]},
                    )

                booking.agreement_signed = True
                booking.agreement_signed_at = timezone.now()
                booking.agreement_signed_by = command.signed_by.strip()
                booking.agreement_signed_method = command.method
                booking.agreement_ip_address = command.ip_address or None
                booking.agreement_user_agent = command.user_agent
                booking.save(update_fields=[
                    "agreement_signed",
                    "agreement_signed_at",
                    "agreement_signed_by",
                    "agreement_signed_method",
                    "agreement_ip_address",
                    "agreement_user_agent",
                    "updated_at",
                ])
                audit.record_agreement_signed(
                    booking,
                    actor,
                    booking.agreement_signed_by,
                    command.method,
                    ip_address=command.ip_address,
                    user_agent=command.user_agent,
                )
                uow.add_event(AgreementSigned(
                    aggregate_id=booking.pk,
                    booking_ref=booking.booking_ref,
                    signed_by=booking.agreement_signed_by,
                    method=command.method,
                ))

        logger.info("Agreement for booking %s signed by %s (%s)",
                    booking.booking_ref, booking.agreement_signed_by, command.method)
        return booking


class RecordPaymentStatusChangeHandler:
    """
    Handler for payment status changes made by staff

    An empty comment is rejected before anything is loaded or written.
    """

    def handle(self, command: RecordPaymentStatusChangeCommand) -> Booking:
        validator = BookingValidator()
        comment = (command.admin_comment or '').strip()
        if not comment:
            validator.add("admin_comment", "A comment explaining the payment status change is required.")
        if command.new_status not in Booking.PaymentStatus.values:
            validator.add("payment_status", f"Unknown payment status '{command.new_status}'.")
        validator.raise_if_invalid()

        with persistence_guard("record_payment_status_change", target=command.booking_id):
            with DjangoUnitOfWork() as uow:
                booking = get_booking(command.booking_id, lock=True)
                previous_status = booking.payment_status
                if previous_status == command.new_status:
                    return booking

                booking.payment_status = command.new_status
                booking.admin_payment_comment = comment
                booking.payment_date = (
                    None if command.new_status == Booking.PaymentStatus.PENDING else timezone.now()
                )
                booking.save(update_fields=[
                    "payment_status",
                    "admin_payment_comment",
                    "payment_date",
                    "updated_at",
                ])
                audit.record_payment_status_change(
                    booking, previous_status, command.new_status, command.actor_details, comment
                )
                uow.add_event(PaymentStatusChanged(
                    aggregate_id=booking.pk,
                    booking_ref=booking.booking_ref,
                    previous_status=previous_status,
                    new_status=command.new_status,
                ))

        logger.info("Booking %s payment status %s -> %s",
                    booking.booking_ref, previous_status, command.new_status)
        return booking


class RecordEmailEventHandler:
    """Handler for email tracking (sent, opened, clicked)"""

    def handle(self, command: RecordEmailEventCommand) -> BookingAuditEntry:
        if command.event not in audit.EMAIL_ACTIONS:
            raise BookingValidationError(
                f"Unknown email event '{command.event}'.",
                errors={"event": [f"Must be one of: {', '.join(audit.EMAIL_ACTIONS)}."]},
            )
        if command.details is not None and not isinstance(command.details, dict):
            raise BookingValidationError(
                "Email event details must be an object.",
                errors={"details": ["Expected an object."]},
            )

        with persistence_guard("record_email_event", target=command.booking_id):
            with transaction.atomic():
                booking = get_booking(command.booking_id)
                return audit.record_email_event(
                    booking,
                    command.event,
                    email_type=command.email_type,
                    ip_address=command.ip_address,
                    user_agent=command.user_agent,
                    details=command.details,
                )
