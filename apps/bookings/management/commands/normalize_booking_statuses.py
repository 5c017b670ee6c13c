from collections import Counter

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.bookings.domain.status import BookingStatus, normalize_status
from apps.bookings.exceptions import BookingValidationError
from apps.bookings.models import Booking


class Command(BaseCommand):
    help = "Rewrites legacy booking status spellings (complete, cancelled, ...) to the current set"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report what would change",
        )

    def handle(self, *args, **options):
        legacy = Booking.objects.exclude(status__in=BookingStatus.ALL)
        found = Counter(legacy.values_list("status", flat=True))

        if not found:
            self.stdout.write(self.style.SUCCESS("All booking statuses are already normalised"))
            return

        updated = 0
        with transaction.atomic():
            for raw_status, count in sorted(found.items()):
                try:
                    status = normalize_status(raw_status)
                except BookingValidationError:
                    self.stdout.write(
                        self.style.WARNING(f"{count} booking(s) with unknown status '{raw_status}', left as is")
                    )
                    continue

                self.stdout.write(f"'{raw_status}' -> '{status}': {count} booking(s)")
                if not options["dry_run"]:
                    # Statuses outside the enum never reach the status machine.
                    updated += Booking.objects.filter(status=raw_status).update(
                        status=status, updated_at=timezone.now()
                    )

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("Dry run, nothing was changed"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Normalised {updated} booking(s)"))
