from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("fleet", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booking_ref", models.CharField(editable=False, max_length=20, unique=True)),
                ("customer_name", models.CharField(max_length=120)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_phone", models.CharField(max_length=30)),
                ("customer_address", models.TextField(blank=True)),
                (
                    "castle",
                    models.ForeignKey(
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="bookings",
                        to="fleet.castle",
                    ),
                ),
                ("castle_name", models.CharField(max_length=100)),
                ("date", models.DateField()),
                ("start_at", models.DateTimeField(blank=True, null=True)),
                ("end_at", models.DateTimeField(blank=True, null=True)),
                ("duration_hours", models.DecimalField(decimal_places=1, default=Decimal("8.0"), max_digits=4)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("cash", "Cash"),
                            ("card", "Card"),
                            ("bank_transfer", "Bank transfer"),
                            ("online", "Online"),
                            ("other", "Other"),
                        ],
                        default="cash",
                        max_length=20,
                    ),
                ),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("deposit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("notes", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("completed", "Completed"),
                            ("expired", "Expired"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Awaiting payment"),
                            ("deposit_paid", "Deposit paid"),
                            ("paid_full", "Paid in full"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("payment_date", models.DateTimeField(blank=True, null=True)),
                ("admin_payment_comment", models.TextField(blank=True)),
                ("agreement_signed", models.BooleanField(default=False)),
                ("agreement_signed_at", models.DateTimeField(blank=True, null=True)),
                ("agreement_signed_by", models.CharField(blank=True, max_length=255)),
                (
                    "agreement_signed_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("email", "Signed from email link"),
                            ("manual", "Recorded manually"),
                            ("physical", "Signed on paper"),
                            ("admin_override", "Admin override"),
                        ],
                        max_length=20,
                    ),
                ),
                ("agreement_ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("agreement_user_agent", models.TextField(blank=True)),
                (
                    "calendar_event_id",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of the mirrored event in the external calendar.",
                        max_length=255,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["castle", "date"], name="booking_castle_date_idx"),
                    models.Index(fields=["status"], name="booking_status_idx"),
                    models.Index(fields=["date"], name="booking_date_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "expired"), _negated=True),
                        fields=("castle", "date"),
                        name="booking_unique_active_castle_date",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("start_at__isnull", True),
                            ("end_at__isnull", True),
                            ("end_at__gt", models.F("start_at")),
                            _connector="OR",
                        ),
                        name="booking_valid_window",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("deposit__gte", 0), ("deposit__lte", models.F("total_price"))),
                        name="booking_valid_deposit",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BookingAuditEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "booking",
                    models.ForeignKey(
                        db_constraint=False,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="audit_entries",
                        to="bookings.booking",
                    ),
                ),
                ("booking_ref", models.CharField(max_length=20)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("booking_created", "Booking created"),
                            ("status_change", "Status changed"),
                            ("manual_confirmation", "Confirmed manually"),
                            ("agreement_signed", "Agreement signed"),
                            ("payment_status_change", "Payment status changed"),
                            ("agreement_email_sent", "Agreement email sent"),
                            ("email_opened", "Email opened"),
                            ("email_clicked", "Email link clicked"),
                        ],
                        max_length=40,
                    ),
                ),
                (
                    "actor",
                    models.CharField(
                        choices=[("customer", "Customer"), ("admin", "Admin"), ("system", "System")],
                        max_length=20,
                    ),
                ),
                ("actor_details", models.CharField(blank=True, max_length=255)),
                ("method", models.CharField(blank=True, max_length=40)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
            ],
            options={
                "verbose_name": "Booking audit entry",
                "verbose_name_plural": "Booking audit entries",
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["booking", "id"], name="audit_booking_order_idx"),
                    models.Index(fields=["action", "timestamp"], name="audit_action_time_idx"),
                ],
            },
        ),
    ]
