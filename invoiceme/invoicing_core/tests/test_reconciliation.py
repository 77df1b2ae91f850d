import datetime
import uuid
from decimal import Decimal

from django.test import SimpleTestCase
from django.utils import timezone

from ..exceptions import InvalidPaymentError
from ..models import Invoice, InvoiceStatus, LineItem, Payment
from ..services.reconciliation import (calculate_new_balance,
                                       should_mark_as_paid,
                                       validate_payment_against_invoice)


class ReconciliationTests(SimpleTestCase):
    def setUp(self):
        self.invoice = Invoice.create_draft(
            customer_id=uuid.uuid4(),
            issue_date=datetime.date(2026, 1, 1),
            due_date=datetime.date(2026, 1, 31),
            payment_terms="Net 30",
            invoice_number="INV-2026-0007",
        )
        self.invoice.add_line_item(
            LineItem(description="Retainer", quantity=1, unit_price=Decimal("500.00"))
        )

    def payment(self, amount):
        return Payment.create_payment(
            invoice_id=self.invoice.pk,
            payment_date=timezone.localdate(),
            amount=Decimal(amount),
            payment_method="CHECK",
            created_by="user-1",
        )

    def test_sent_invoice_accepts_payment_within_balance(self):
        self.invoice.mark_as_sent()
        validate_payment_against_invoice(self.payment("500.00"), self.invoice)

    def test_draft_invoice_rejected(self):
        with self.assertRaises(InvalidPaymentError) as ctx:
            validate_payment_against_invoice(self.payment("100.00"), self.invoice)
        self.assertIn(
            "Cannot apply payment to Draft invoice. Only Sent invoices can receive payments.",
            ctx.exception.messages,
        )
        self.assertEqual(ctx.exception.status, InvoiceStatus.DRAFT)

    def test_exceeding_balance_rejected_with_amounts(self):
        self.invoice.mark_as_sent()
        with self.assertRaises(InvalidPaymentError) as ctx:
            validate_payment_against_invoice(self.payment("600.00"), self.invoice)
        self.assertIn(
            "Payment amount ($600.00) exceeds invoice balance ($500.00)",
            ctx.exception.messages,
        )
        self.assertEqual(ctx.exception.amount, Decimal("600.00"))
        self.assertEqual(ctx.exception.balance, Decimal("500.00"))

    def test_missing_arguments(self):
        with self.assertRaisesMessage(InvalidPaymentError, "Payment cannot be null"):
            validate_payment_against_invoice(None, self.invoice)
        with self.assertRaisesMessage(InvalidPaymentError, "Invoice cannot be null"):
            validate_payment_against_invoice(self.payment("1.00"), None)
        with self.assertRaises(InvalidPaymentError):
            calculate_new_balance(self.invoice, None)

    def test_calculate_new_balance(self):
        self.invoice.mark_as_sent()
        self.assertEqual(calculate_new_balance(self.invoice, Decimal("150.00")), Decimal("350.00"))
        # pure: the invoice is untouched
        self.assertEqual(self.invoice.balance, Decimal("500.00"))

    def test_should_mark_as_paid_uses_tolerance(self):
        self.assertTrue(should_mark_as_paid(Decimal("0.00")))
        self.assertTrue(should_mark_as_paid(Decimal("0.009")))
        self.assertTrue(should_mark_as_paid(Decimal("-0.005")))
        self.assertFalse(should_mark_as_paid(Decimal("0.01")))
        self.assertFalse(should_mark_as_paid(Decimal("250.00")))
