import datetime
import uuid
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from ..events import PaymentRecorded, payment_recorded
from ..exceptions import (InvalidPaymentError, InvoiceNotAcceptingPayments,
                          InvoiceNotFound, PaymentExceedsBalance)
from ..models import (AuditLog, Customer, IdempotencyRecord, Invoice,
                      InvoiceStatus, LineItem, Payment)
from ..services import (PaymentResult, RecordPaymentRequest, create_invoice,
                        record_payment, send_invoice)
from ..services import idempotency as idempotency_service


class RecordPaymentTests(TestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Acme Corp", email="billing@acme.example")
        self.today = timezone.localdate()
        # 5 x 100.00 = 500.00
        self.invoice = self.make_sent_invoice(LineItem(description="Consulting", quantity=5, unit_price=Decimal("100.00")))

    def make_sent_invoice(self, *items):
        invoice = create_invoice(self.customer.pk, self.today, list(items))
        return send_invoice(invoice.pk)

    def request(self, amount, invoice=None, **extra):
        fields = dict(
            invoice_id=(invoice or self.invoice).pk,
            payment_date=self.today,
            amount=Decimal(amount),
            payment_method="BANK_TRANSFER",
        )
        fields.update(extra)
        return RecordPaymentRequest(**fields)

    def test_full_payment_of_discounted_taxed_invoice(self):
        invoice = self.make_sent_invoice(
            LineItem(
                description="Consulting",
                quantity=5,
                unit_price=Decimal("100.00"),
                discount_percent=Decimal("0.10"),
                tax_rate=Decimal("0.08"),
            )
        )
        self.assertEqual(invoice.total_amount, Decimal("486.00"))

        result = record_payment(self.request("486.00", invoice=invoice), user_id="user-1")

        self.assertEqual(result.remaining_balance, Decimal("0.00"))
        self.assertEqual(result.invoice_status, "Paid")
        self.assertEqual(result.invoice_number, invoice.invoice_number)
        self.assertEqual(result.customer_name, "Acme Corp")
        self.assertEqual(result.created_by, "user-1")

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(invoice.balance, Decimal("0.00"))
        self.assertEqual(Payment.objects.for_invoice(invoice.pk).count(), 1)

    def test_partial_payments_until_paid(self):
        for amount, balance, status in (
            ("150.00", "350.00", "Sent"),
            ("100.00", "250.00", "Sent"),
            ("250.00", "0.00", "Paid"),
        ):
            result = record_payment(self.request(amount), user_id="user-1")
            self.assertEqual(result.remaining_balance, Decimal(balance))
            self.assertEqual(result.invoice_status, status)

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)
        self.assertEqual(Payment.objects.for_invoice(self.invoice.pk).total_amount(), Decimal("500.00"))

    def test_overpayment_rejected_without_writes(self):
        with self.assertRaises(PaymentExceedsBalance) as ctx:
            record_payment(self.request("600.00"), user_id="user-1")
        self.assertIn("Payment amount ($600.00) exceeds invoice balance ($500.00)", ctx.exception.messages[0])
        self.assertEqual(ctx.exception.code, "payment_exceeds_balance")

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance, Decimal("500.00"))
        self.assertFalse(Payment.objects.exists())

    def test_draft_invoice_rejected(self):
        draft = create_invoice(self.customer.pk, self.today, [LineItem(description="X", quantity=1, unit_price=Decimal("10.00"))])
        with self.assertRaises(InvoiceNotAcceptingPayments) as ctx:
            record_payment(self.request("10.00", invoice=draft), user_id="user-1")
        self.assertEqual(ctx.exception.current_status, "Draft")
        self.assertIn("Cannot apply payment to Draft invoice", ctx.exception.messages[0])

    def test_paid_invoice_rejected(self):
        record_payment(self.request("500.00"), user_id="user-1")
        with self.assertRaises(InvoiceNotAcceptingPayments):
            record_payment(self.request("1.00"), user_id="user-1")
        self.assertEqual(Payment.objects.count(), 1)

    def test_unknown_invoice(self):
        request = RecordPaymentRequest(
            invoice_id=uuid.uuid4(), payment_date=self.today, amount=Decimal("1.00"), payment_method="CASH",
        )
        with self.assertRaises(InvoiceNotFound):
            record_payment(request, user_id="user-1")

    def test_future_dated_payment_rejected(self):
        tomorrow = self.today + datetime.timedelta(days=1)
        with self.assertRaisesMessage(InvalidPaymentError, "Payment date cannot be in the future"):
            record_payment(self.request("100.00", payment_date=tomorrow), user_id="user-1")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance, Decimal("500.00"))
        self.assertFalse(Payment.objects.exists())

    def test_failure_after_payment_insert_rolls_back(self):
        # invoice save blows up after the payment row was written
        with mock.patch.object(Invoice, "save", side_effect=RuntimeError("disk full")):
            with self.assertRaises(RuntimeError):
                record_payment(self.request("100.00", idempotency_key="k-rollback"), user_id="user-1")

        self.assertFalse(Payment.objects.exists())
        self.assertFalse(IdempotencyRecord.objects.exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance, Decimal("500.00"))

    def test_same_idempotency_key_records_once(self):
        first = record_payment(self.request("100.00", idempotency_key="k-1"), user_id="user-1")
        again = record_payment(self.request("100.00", idempotency_key="k-1"), user_id="user-1")

        self.assertEqual(again, first)
        self.assertEqual(Payment.objects.count(), 1)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance, Decimal("400.00"))

    def test_expired_idempotency_key_is_reusable(self):
        IdempotencyRecord.objects.create(
            idempotency_key="k-old",
            result={"stale": True},
            expires_at=timezone.now() - datetime.timedelta(minutes=1),
        )
        result = record_payment(self.request("50.00", idempotency_key="k-old"), user_id="user-1")

        self.assertEqual(result.remaining_balance, Decimal("450.00"))
        record = IdempotencyRecord.objects.get(idempotency_key="k-old")
        self.assertEqual(record.result["payment_id"], str(result.payment_id))

    def test_lost_idempotency_race_returns_winner(self):
        # Another request stored its result for this key while we were
        # past both checks: our insert collides and the winner is returned
        winner = PaymentResult(
            payment_id=uuid.uuid4(),
            invoice_id=self.invoice.pk,
            payment_date=self.today,
            amount=Decimal("100.00"),
            payment_method="CASH",
            reference=None,
            notes=None,
            remaining_balance=Decimal("400.00"),
            invoice_status="Sent",
            invoice_number=self.invoice.invoice_number,
            customer_name="Acme Corp",
            created_by="user-2",
            created_at=timezone.now(),
        )
        idempotency_service.store_idempotency("k-race", winner)

        real_check = idempotency_service.check_idempotency
        calls = []

        def blind_then_real(key, result_type):
            calls.append(key)
            # first two lookups miss, as if the winner had not committed yet
            if len(calls) <= 2:
                return None
            return real_check(key, result_type)

        with mock.patch("invoicing_core.services.payment.check_idempotency", side_effect=blind_then_real):
            result = record_payment(self.request("100.00", idempotency_key="k-race"), user_id="user-1")

        self.assertEqual(result, winner)
        self.assertFalse(Payment.objects.exists())
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.balance, Decimal("500.00"))

    def test_payment_recorded_event_after_commit(self):
        received = []

        def listener(sender, event, **kwargs):
            received.append(event)

        payment_recorded.connect(listener)
        self.addCleanup(payment_recorded.disconnect, listener)

        with self.captureOnCommitCallbacks(execute=True):
            result = record_payment(self.request("500.00"), user_id="user-1")

        (event,) = received
        self.assertIsInstance(event, PaymentRecorded)
        self.assertEqual(event.payment_id, result.payment_id)
        self.assertEqual(event.invoice_id, self.invoice.pk)
        self.assertEqual(event.amount, Decimal("500.00"))
        self.assertEqual(event.new_balance, Decimal("0.00"))
        self.assertEqual(event.new_status, "Paid")

        # audit trail: the payment plus the invoice's balance and status changes
        actions = set(AuditLog.objects.filter(actor="user-1").values_list("action", flat=True))
        self.assertEqual(actions, {"PaymentRecorded", "InvoiceBalanceChanged", "InvoiceStatusChanged"})

    def test_payments_are_immutable(self):
        record_payment(self.request("100.00"), user_id="user-1")
        payment = Payment.objects.get()

        payment.notes = "edited"
        with self.assertRaises(InvalidPaymentError):
            payment.save()
        with self.assertRaises(InvalidPaymentError):
            payment.delete()
        with self.assertRaises(InvalidPaymentError):
            Payment.objects.all().delete()
        self.assertEqual(Payment.objects.count(), 1)
