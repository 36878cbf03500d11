from django.core.management.base import BaseCommand
from django.db import transaction

from medinfinite.staff.alerts import process_expiring_documents


class Command(BaseCommand):
    help = 'Notify admins and carers about staff documents that are expiring soon or have expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be sent without saving anything',
        )
        parser.add_argument(
            '--send-email',
            action='store_true',
            help='Also email each notification',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        with transaction.atomic():
            result = process_expiring_documents(send_email=options['send_email'] and not dry_run)
            self.stdout.write(
                f"Checked {result['checked']} document(s): "
                f"{result['expiring']} expiring soon, {result['expired']} expired, "
                f"{result['notifications']} notification(s) created"
            )
            if dry_run:
                transaction.set_rollback(True)
                self.stdout.write(self.style.WARNING("Dry run complete. Rolling back changes."))
            else:
                self.stdout.write(self.style.SUCCESS("Staff document expiry check complete."))
