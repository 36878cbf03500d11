"""
Management command to create the default system settings
Usage: python manage.py seed_settings [--dry-run] [--overwrite]
"""
from django.core.management.base import BaseCommand
from django.db import transaction

from medinfinite.core.models import Setting

DEFAULT_SETTINGS = [
    ('vat_rate', '0.20', 'VAT rate applied to vatable rate schedules (0.20 = 20%)'),
    ('invoice_payment_terms_days', '30', 'Days after the invoice date when payment is due'),
    ('expiring_soon_days', '30', 'Training certificates expiring within this many days are flagged'),
]


class Command(BaseCommand):
    help = 'Create default system settings (VAT rate, payment terms, training expiry window)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be created without saving anything',
        )
        parser.add_argument(
            '--overwrite',
            action='store_true',
            help='Reset existing settings to their default values',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        overwrite = options['overwrite']
        created_count = 0
        updated_count = 0

        with transaction.atomic():
            for key, value, description in DEFAULT_SETTINGS:
                setting = Setting.objects.filter(key=key).first()
                if setting is None:
                    if not dry_run:
                        Setting.objects.create(key=key, value=value, description=description)
                    self.stdout.write(self.style.SUCCESS(f'Created setting: {key} = {value}'))
                    created_count += 1
                elif overwrite and setting.value != value:
                    if not dry_run:
                        setting.value = value
                        setting.description = description
                        setting.save(update_fields=['value', 'description', 'updated_at'])
                    self.stdout.write(self.style.WARNING(f'Reset setting: {key} {setting.value!r} -> {value!r}'))
                    updated_count += 1
                else:
                    self.stdout.write(f'  Setting already exists: {key}')

        prefix = '[DRY RUN] ' if dry_run else ''
        self.stdout.write(self.style.SUCCESS(
            f'\n{prefix}Summary: {created_count} created, {updated_count} reset'
        ))
