import datetime
import uuid
from decimal import Decimal

from django.db import IntegrityError
from django.test import TestCase, override_settings
from django.utils import timezone

from ..models import IdempotencyRecord
from ..services import (PaymentResult, check_idempotency,
                        purge_expired_idempotency_records, store_idempotency)
from ..tasks import purge_expired_idempotency_records as purge_task


def make_result(**overrides):
    fields = dict(
        payment_id=uuid.uuid4(),
        invoice_id=uuid.uuid4(),
        payment_date=datetime.date(2026, 1, 15),
        amount=Decimal("150.00"),
        payment_method="CHECK",
        reference="CHK-1001",
        notes="first instalment",
        remaining_balance=Decimal("350.00"),
        invoice_status="Sent",
        invoice_number="INV-2026-0001",
        customer_name="Acme Corp",
        created_by="user-1",
        created_at=timezone.now(),
    )
    fields.update(overrides)
    return PaymentResult(**fields)


class IdempotencyStoreTests(TestCase):
    def expire(self, key):
        IdempotencyRecord.objects.filter(idempotency_key=key).update(
            expires_at=timezone.now() - datetime.timedelta(seconds=1)
        )

    def test_missing_or_blank_key(self):
        self.assertIsNone(check_idempotency("nope", PaymentResult))
        self.assertIsNone(check_idempotency(None, PaymentResult))
        self.assertIsNone(check_idempotency("", PaymentResult))

    def test_stored_result_is_returned_unchanged(self):
        result = make_result()
        store_idempotency("key-1", result)
        self.assertEqual(check_idempotency("key-1", PaymentResult), result)

    @override_settings(INVOICING_IDEMPOTENCY_TTL_HOURS=2)
    def test_ttl_from_settings(self):
        before = timezone.now()
        record = store_idempotency("key-ttl", make_result())
        self.assertGreaterEqual(record.expires_at, before + datetime.timedelta(hours=2))
        self.assertLess(record.expires_at, before + datetime.timedelta(hours=2, minutes=1))

    def test_default_ttl_is_a_day(self):
        record = store_idempotency("key-day", make_result())
        self.assertEqual(record.expires_at - record.created_at, datetime.timedelta(hours=24))

    def test_expired_record_is_ignored(self):
        store_idempotency("key-2", make_result())
        self.expire("key-2")
        self.assertIsNone(check_idempotency("key-2", PaymentResult))

    def test_expired_record_is_replaced(self):
        store_idempotency("key-3", make_result())
        self.expire("key-3")

        fresh = make_result(amount=Decimal("75.00"))
        store_idempotency("key-3", fresh)

        self.assertEqual(IdempotencyRecord.objects.filter(idempotency_key="key-3").count(), 1)
        self.assertEqual(check_idempotency("key-3", PaymentResult), fresh)

    def test_live_key_cannot_be_stored_twice(self):
        store_idempotency("key-4", make_result())
        with self.assertRaises(IntegrityError):
            store_idempotency("key-4", make_result())

    def test_purge_only_removes_expired(self):
        store_idempotency("live", make_result())
        store_idempotency("old-1", make_result())
        store_idempotency("old-2", make_result())
        self.expire("old-1")
        self.expire("old-2")

        self.assertEqual(purge_expired_idempotency_records(), 2)
        self.assertEqual(
            list(IdempotencyRecord.objects.values_list("idempotency_key", flat=True)), ["live"]
        )

    def test_periodic_task_purges(self):
        store_idempotency("old", make_result())
        self.expire("old")
        self.assertEqual(purge_task(), 1)
        self.assertFalse(IdempotencyRecord.objects.exists())
