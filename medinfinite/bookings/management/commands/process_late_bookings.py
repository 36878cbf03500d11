from django.core.management.base import BaseCommand
from django.db import transaction

from medinfinite.bookings.alerts import process_late_bookings


class Command(BaseCommand):
    help = 'Raise late start and missed booking alerts for bookings that have not started'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be raised without saving anything',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        with transaction.atomic():
            result = process_late_bookings()
            self.stdout.write(
                f"Processed {result['processed']} booking(s): "
                f"{result['late_alerts']} late start alert(s), {result['missed_alerts']} missed alert(s), "
                f"{result['staff_updated']} carer record(s) updated"
            )
            if dry_run:
                transaction.set_rollback(True)
                self.stdout.write(self.style.WARNING("Dry run complete. Rolling back changes."))
            else:
                self.stdout.write(self.style.SUCCESS("Late booking check complete."))
