from django.core.management.base import BaseCommand

from invoicing_core.services import purge_expired_idempotency_records


class Command(BaseCommand):
    help = "Delete expired idempotency records (same job as the periodic Celery task)."

    def handle(self, *args, **options):
        deleted = purge_expired_idempotency_records()
        self.stdout.write(self.style.SUCCESS(f"Purged {deleted} expired idempotency record(s)."))
