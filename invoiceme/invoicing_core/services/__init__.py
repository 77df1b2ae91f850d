from .customers import create_customer, delete_customer, update_customer
from .idempotency import (check_idempotency, purge_expired_idempotency_records,
                          store_idempotency)
from .invoices import create_invoice, send_invoice, update_invoice
from .numbering import next_invoice_number
from .payment import PaymentResult, RecordPaymentRequest, record_payment
from .queries import list_payments_for_invoice, payment_statistics
from .reconciliation import (calculate_new_balance, should_mark_as_paid,
                             validate_payment_against_invoice)
