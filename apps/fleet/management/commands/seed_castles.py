from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.fleet.models import Castle

DEFAULT_FLEET = [
    {
        "name": "The Classic Fun",
        "theme": "Classic",
        "size": "12ft x 15ft",
        "price": Decimal("60.00"),
        "description": "A timeless classic, perfect for any party or event.",
        "image_url": "/bouncy-castle-1.jpg",
    },
    {
        "name": "Princess Palace",
        "theme": "Princess",
        "size": "15ft x 15ft",
        "price": Decimal("75.00"),
        "description": "A magical castle featuring artwork of enchanting characters.",
        "image_url": "/bouncy-castle-2.jpg",
    },
    {
        "name": "Jungle Adventure",
        "theme": "Jungle",
        "size": "12ft x 18ft with slide",
        "price": Decimal("80.00"),
        "description": "Includes a slide and is decorated with jungle animals.",
        "image_url": "/bouncy-castle-3.jpg",
    },
    {
        "name": "Superhero Base",
        "theme": "Superhero",
        "size": "14ft x 14ft",
        "price": Decimal("70.00"),
        "description": "Perfect for action-packed parties.",
        "image_url": "/bouncy-castle-4.jpg",
    },
    {
        "name": "Party Time Bouncer",
        "theme": "Party",
        "size": "10ft x 12ft",
        "price": Decimal("55.00"),
        "description": "A compact bouncer for smaller gardens.",
        "image_url": "/bouncy-castle-1.jpg",
    },
    {
        "name": "Under The Sea",
        "theme": "Ocean",
        "size": "15ft x 16ft",
        "price": Decimal("75.00"),
        "description": "Ocean-themed castle with colourful sea creatures.",
        "image_url": "/bouncy-castle-2.jpg",
    },
]


class Command(BaseCommand):
    help = "Inserts the default castle fleet when no castles exist yet"

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Create missing default castles even if the fleet is not empty",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if Castle.objects.exists() and not options["force"]:
            self.stdout.write(
                self.style.WARNING(f"Fleet already has {Castle.objects.count()} castles, nothing to do")
            )
            return

        created_count = 0
        for data in DEFAULT_FLEET:
            _, created = Castle.objects.get_or_create(name=data["name"], defaults=data)
            if created:
                created_count += 1
                self.stdout.write(f"Created castle: {data['name']}")

        self.stdout.write(self.style.SUCCESS(f"Seeded {created_count} castles"))
