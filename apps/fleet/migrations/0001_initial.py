from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Castle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                ("theme", models.CharField(blank=True, max_length=100)),
                ("size", models.CharField(blank=True, max_length=50)),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("description", models.TextField(blank=True)),
                (
                    "image_url",
                    models.CharField(
                        blank=True,
                        help_text="Reference to the image in external blob storage.",
                        max_length=500,
                    ),
                ),
                (
                    "maintenance_status",
                    models.CharField(
                        choices=[
                            ("available", "Available"),
                            ("maintenance", "Under maintenance"),
                            ("out_of_service", "Out of service"),
                        ],
                        default="available",
                        max_length=20,
                    ),
                ),
                ("maintenance_notes", models.TextField(blank=True)),
                ("maintenance_start_date", models.DateField(blank=True, null=True)),
                ("maintenance_end_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Castle",
                "verbose_name_plural": "Castles",
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(maintenance_start_date__isnull=True)
                            | models.Q(maintenance_end_date__isnull=True)
                            | models.Q(maintenance_end_date__gte=models.F("maintenance_start_date"))
                        ),
                        name="castle_valid_maintenance_window",
                    ),
                ],
            },
        ),
    ]
