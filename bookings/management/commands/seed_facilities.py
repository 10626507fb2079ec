from __future__ import annotations

from django.core.management.base import BaseCommand

from bookings.seed import seed_default_facilities


class Command(BaseCommand):
    help = "Seed the demo facilities and their courts (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--update-existing",
            action="store_true",
            help="Update existing facilities and courts to match the default seed values.",
        )

    def handle(self, *args, **options):
        result = seed_default_facilities(update_existing=options["update_existing"])
        self.stdout.write(
            self.style.SUCCESS(
                f"Seed completed: created={result['created']} updated={result['updated']} skipped={result['skipped']}"
            )
        )
