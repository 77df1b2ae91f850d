from .auditlog import AuditLog
from .customer import Customer
from .idempotency import IdempotencyRecord
from .invoice import (ALLOWED_TRANSITIONS, Invoice, InvoiceNumberSequence,
                      InvoiceStatus)
from .line_item import LineItem
from .payment import Payment, PaymentMethod
