from decimal import Decimal

from ..exceptions import InvalidPaymentError
from ..models import Invoice, InvoiceStatus, Payment
from ..money import is_settled, quantize_money


# ---------------------------------------------
# Cross-aggregate payment rules (stateless)
# ---------------------------------------------
def validate_payment_against_invoice(payment: Payment, invoice: Invoice):
    """
    Check a built Payment can be applied to the invoice.
    Raises InvalidPaymentError carrying amount, balance and status.
    """
    if payment is None:
        raise InvalidPaymentError("Payment cannot be null")
    if invoice is None:
        raise InvalidPaymentError("Invoice cannot be null")

    # Only Sent invoices take money (Draft is not issued, Paid is settled)
    if invoice.status != InvoiceStatus.SENT:
        raise InvalidPaymentError(
            f"Cannot apply payment to {str(invoice.status)} invoice. "
            "Only Sent invoices can receive payments.",
            amount=payment.amount,
            balance=invoice.balance,
            status=invoice.status,
        )

    # Overpayment would leave a negative receivable
    if payment.amount > invoice.balance:
        raise InvalidPaymentError(
            f"Payment amount (${payment.amount}) exceeds invoice balance (${invoice.balance})",
            amount=payment.amount,
            balance=invoice.balance,
            status=invoice.status,
        )


def calculate_new_balance(invoice: Invoice, amount: Decimal) -> Decimal:
    if invoice is None:
        raise InvalidPaymentError("Invoice cannot be null")
    if amount is None:
        raise InvalidPaymentError("Payment amount cannot be null")
    return quantize_money(invoice.balance - amount)


def should_mark_as_paid(balance: Decimal) -> bool:
    # |balance| < 0.01 absorbs rounding residue
    if balance is None:
        return False
    return is_settled(balance)
