import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from ..exceptions import InvalidPaymentError
from ..managers import PaymentManager
from ..money import CENT, to_decimal
from .invoice import Invoice


class PaymentMethod(models.TextChoices):
    CREDIT_CARD = "CREDIT_CARD", "Credit Card"
    BANK_TRANSFER = "BANK_TRANSFER", "Bank Transfer"
    CHECK = "CHECK", "Check"
    CASH = "CASH", "Cash"


# ---------- Payment ----------
# Immutable record of money received against one invoice.
# Corrections are new payments, never edits.
class Payment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        Invoice,
        # an invoice with payments can never be deleted
        on_delete=models.PROTECT,
        related_name="payments",
    )

    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)

    # Check number, transfer id, card auth code...
    reference = models.CharField(max_length=255, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    # Id of the user who recorded it
    created_by = models.CharField(max_length=255)

    objects = PaymentManager()

    class Meta:
        indexes = [
            models.Index(fields=["invoice", "payment_date"], name="payment_invoice_date_idx"),
            models.Index(fields=["payment_date"], name="payment_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="chk_payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"Payment {self.amount} on {self.payment_date} ({self.payment_method})"

    @classmethod
    def create_payment(cls, invoice_id, payment_date, amount, payment_method,
                       reference=None, notes=None, created_by=None):
        """
        Validate and build an unsaved Payment.
        Raises InvalidPaymentError on the first rule that fails.
        """
        if invoice_id is None:
            raise InvalidPaymentError("Invoice ID is required")

        if payment_date is None:
            raise InvalidPaymentError("Payment date is required")
        if payment_date > timezone.localdate():
            raise InvalidPaymentError("Payment date cannot be in the future")

        amount = to_decimal(amount, "Payment amount", error_class=InvalidPaymentError)
        if amount is None:
            raise InvalidPaymentError("Payment amount is required")
        if amount <= 0:
            raise InvalidPaymentError("Payment amount must be positive", amount=amount)
        # no silent rounding: 10.005 is an input error
        if amount != amount.quantize(CENT):
            raise InvalidPaymentError(
                "Payment amount cannot have more than 2 decimal places", amount=amount
            )

        if payment_method is None:
            raise InvalidPaymentError("Payment method is required")
        if payment_method not in PaymentMethod.values:
            raise InvalidPaymentError(f"Invalid payment method: {payment_method}")

        if created_by is None or not str(created_by).strip():
            raise InvalidPaymentError("Created by is required")

        return cls(
            invoice_id=invoice_id,
            payment_date=payment_date,
            amount=amount.quantize(CENT),
            payment_method=payment_method,
            reference=reference,
            notes=notes,
            created_at=timezone.now(),
            created_by=str(created_by),
        )

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise InvalidPaymentError("Payment amount must be positive", amount=self.amount)

    def save(self, *args, **kwargs):
        # Insert only: a stored payment is never rewritten
        if not self._state.adding:
            raise InvalidPaymentError("Payments cannot be modified once recorded")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise InvalidPaymentError("Payments cannot be deleted")
