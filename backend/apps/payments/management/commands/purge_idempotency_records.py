"""
Delete expired idempotency records.

Run: python manage.py purge_idempotency_records
"""

from django.core.management.base import BaseCommand

from apps.payments.idempotency import purge_expired_idempotency_records


class Command(BaseCommand):
    help = "Delete completed idempotency records past their expiry"

    def handle(self, *args, **options):
        deleted = purge_expired_idempotency_records()
        self.stdout.write(self.style.SUCCESS(f"Purged {deleted} expired records"))
