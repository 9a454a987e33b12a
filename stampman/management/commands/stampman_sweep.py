"""Management command to expire stale stamps and tickets."""

from django.core.management.base import BaseCommand

from stampman.sweeper import sweep


class Command(BaseCommand):
    help = "Expire active stamps and pending tickets past their expiry"

    def handle(self, *args, **options):
        result = sweep()
        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {result.stamps_expired} stamps and "
                f"{result.tickets_expired} tickets."
            )
        )
