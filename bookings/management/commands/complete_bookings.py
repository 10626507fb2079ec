from __future__ import annotations

from django.core.management.base import BaseCommand

from bookings.services import complete_elapsed_bookings


class Command(BaseCommand):
    help = "Mark confirmed bookings whose end time has passed as completed."

    def handle(self, *args, **options):
        count = complete_elapsed_bookings()
        self.stdout.write(self.style.SUCCESS(f"Completed {count} booking(s)."))
