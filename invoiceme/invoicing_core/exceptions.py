from django.core.exceptions import ObjectDoesNotExist, ValidationError

# ---------------------------------------------
# Domain errors
# Built on Django's ValidationError so admin,
# forms and services all treat them the same way
# ---------------------------------------------


class InvalidInvoiceStateError(ValidationError):
    """Raised on an illegal Invoice status transition."""

    def __init__(self, message, current_status=None):
        super().__init__(message, code="invalid_invoice_state")
        self.current_status = current_status


class InvoiceImmutableError(ValidationError):
    """Raised when a Sent or Paid invoice is edited."""

    def __init__(self, message="Cannot modify line items after invoice is sent"):
        super().__init__(message, code="invoice_immutable")


class InvalidPaymentError(ValidationError):
    """
    Raised when a Payment cannot be built or cannot be applied
    to an invoice. Carries the offending amount and the invoice
    balance/status when known, for precise user-facing messages.
    """

    def __init__(self, message, amount=None, balance=None, status=None):
        super().__init__(message, code="invalid_payment")
        self.amount = amount
        self.balance = balance
        self.status = status


# ---------------------------------------------
# Transaction-level errors (record payment)
# ---------------------------------------------


class InvoiceNotFound(ObjectDoesNotExist):
    code = "invoice_not_found"

    def __init__(self, invoice_id):
        super().__init__(f"Invoice not found: {invoice_id}")
        self.invoice_id = invoice_id


class CustomerNotFound(ObjectDoesNotExist):
    code = "customer_not_found"

    def __init__(self, customer_id):
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class InvoiceNotAcceptingPayments(ValidationError):
    """Invoice is not in Sent status (Draft or already Paid)."""

    def __init__(self, invoice_id, current_status):
        super().__init__(
            f"Cannot apply payment to {current_status} invoice. "
            f"Invoice must be in Sent status to accept payments. "
            f"Invoice ID: {invoice_id}",
            code="invoice_not_accepting_payments",
        )
        self.invoice_id = invoice_id
        self.current_status = current_status


class PaymentExceedsBalance(ValidationError):
    def __init__(self, invoice_id, amount, balance):
        super().__init__(
            f"Payment amount (${amount}) exceeds invoice balance (${balance}). "
            f"Invoice ID: {invoice_id}",
            code="payment_exceeds_balance",
        )
        self.invoice_id = invoice_id
        self.amount = amount
        self.balance = balance


# ---------------------------------------------
# Storage-boundary errors
# ---------------------------------------------


class ConcurrencyConflictError(Exception):
    """
    Raised when a caller saves an invoice with a stale version.
    Means "reload and retry", not "your request is invalid".
    """

    code = "concurrency_conflict"

    def __init__(self, invoice_id, expected_version=None, actual_version=None):
        super().__init__(
            "Invoice has been modified by another transaction. "
            "Please refresh and try again."
        )
        self.invoice_id = invoice_id
        self.expected_version = expected_version
        self.actual_version = actual_version
