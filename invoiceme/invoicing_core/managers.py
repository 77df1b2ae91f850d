from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce

# -----------------------------------------
# Repositories: query helpers attached to
# each model's .objects
# -----------------------------------------


class CustomerQuerySet(models.QuerySet):
    def active(self):
        # soft-deleted customers keep their row but drop out of lookups
        return self.filter(deleted_at__isnull=True)


class CustomerManager(models.Manager.from_queryset(CustomerQuerySet)):
    def find_active(self, customer_id):
        return self.active().filter(pk=customer_id).first()


class InvoiceQuerySet(models.QuerySet):
    def for_customer(self, customer_id):
        return self.filter(customer_id=customer_id)

    def with_status(self, status):
        return self.filter(status=status)

    def outstanding(self):
        # Sent invoices that still carry a balance
        return self.filter(status="Sent", balance__gt=0)

    # Enables query:
    # Invoice.objects.outstanding().for_customer(customer.pk)


class InvoiceManager(models.Manager.from_queryset(InvoiceQuerySet)):
    def find_by_id(self, invoice_id, for_update=False):
        """Return the invoice or None. for_update locks the row."""
        qs = self.get_queryset()
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=invoice_id)
        except (self.model.DoesNotExist, ValidationError, ValueError):
            # ValueError: not a valid UUID
            return None


class PaymentQuerySet(models.QuerySet):
    def for_invoice(self, invoice_id):
        # consumers read payment history oldest first
        return self.filter(invoice_id=invoice_id).order_by("payment_date", "created_at")

    def on_date(self, day):
        return self.filter(payment_date=day)

    def between(self, start, end):
        return self.filter(payment_date__gte=start, payment_date__lte=end)

    def total_amount(self) -> Decimal:
        return self.aggregate(
            total=Coalesce(Sum("amount"), Decimal("0.00"))
        )["total"]


class PaymentManager(models.Manager.from_queryset(PaymentQuerySet)):
    pass


class IdempotencyRecordQuerySet(models.QuerySet):
    def live(self, now):
        return self.filter(expires_at__gt=now)

    def expired(self, now):
        return self.filter(expires_at__lte=now)


class IdempotencyRecordManager(models.Manager.from_queryset(IdempotencyRecordQuerySet)):
    pass
