from decimal import Decimal
from typing import Dict, List

from django.db.models import Sum
from django.utils import timezone

from ..exceptions import InvoiceNotFound
from ..models import Invoice, Payment, PaymentMethod
from ..money import ZERO, quantize_money
from .payment import PaymentResult


# ----------------------------
# Read-side payment queries
# ----------------------------
def list_payments_for_invoice(invoice_id) -> List[PaymentResult]:
    """
    Payment history for one invoice, oldest first.
    running_balance is what was still owed right after each payment.
    """
    invoice = Invoice.objects.select_related("customer").filter(pk=invoice_id).first()
    if invoice is None:
        raise InvoiceNotFound(invoice_id)

    results = []
    running = invoice.total_amount
    for payment in Payment.objects.for_invoice(invoice.pk):
        running = quantize_money(running - payment.amount)
        results.append(PaymentResult.of(payment, invoice, running_balance=running))
    return results


def payment_statistics(today=None) -> Dict:
    """Totals collected overall, today, this month and this year, plus a per-method split."""
    today = today or timezone.localdate()
    payments = Payment.objects.all()

    by_method = {method: ZERO for method in PaymentMethod.values}
    # group by method in one query
    for row in payments.values("payment_method").annotate(total=Sum("amount")):
        by_method[row["payment_method"]] = quantize_money(Decimal(row["total"]))

    return {
        "total_collected": payments.total_amount(),
        "collected_today": payments.on_date(today).total_amount(),
        "collected_this_month": payments.between(today.replace(day=1), today).total_amount(),
        "collected_this_year": payments.between(today.replace(month=1, day=1), today).total_amount(),
        "payment_count": payments.count(),
        "by_method": by_method,
    }
