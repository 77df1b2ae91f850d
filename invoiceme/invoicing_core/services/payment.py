import uuid
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import structlog
from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import IntegrityError, connection, transaction
from django.utils.dateparse import parse_datetime

from ..events import PaymentRecorded, publish
from ..exceptions import (InvalidPaymentError, InvoiceNotAcceptingPayments,
                          InvoiceNotFound, PaymentExceedsBalance)
from ..models import Invoice, Payment
from ..money import to_decimal
from .idempotency import check_idempotency, store_idempotency
from .reconciliation import validate_payment_against_invoice

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RecordPaymentRequest:
    invoice_id: uuid.UUID
    payment_date: date
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    # Client-supplied; retries with the same key return the first result
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class PaymentResult:
    payment_id: uuid.UUID
    invoice_id: uuid.UUID
    payment_date: date
    amount: Decimal
    payment_method: str
    reference: Optional[str]
    notes: Optional[str]
    remaining_balance: Decimal
    invoice_status: str
    invoice_number: str
    customer_name: str
    created_by: str
    created_at: datetime
    # Only filled in by payment history queries
    running_balance: Optional[Decimal] = None

    @classmethod
    def of(cls, payment: Payment, invoice: Invoice, running_balance=None):
        return cls(
            payment_id=payment.pk,
            invoice_id=invoice.pk,
            payment_date=payment.payment_date,
            amount=payment.amount,
            payment_method=str(payment.payment_method),
            reference=payment.reference,
            notes=payment.notes,
            remaining_balance=invoice.balance,
            invoice_status=str(invoice.status),
            invoice_number=invoice.invoice_number,
            customer_name=invoice.customer.name,
            created_by=payment.created_by,
            created_at=payment.created_at,
            running_balance=running_balance,
        )

    def to_dict(self):
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            elif isinstance(value, (uuid.UUID, Decimal)):
                value = str(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data):
        def _decimal(value):
            return None if value is None else Decimal(str(value))

        return cls(
            payment_id=uuid.UUID(str(data["payment_id"])),
            invoice_id=uuid.UUID(str(data["invoice_id"])),
            payment_date=date.fromisoformat(data["payment_date"]),
            amount=_decimal(data["amount"]),
            payment_method=data["payment_method"],
            reference=data.get("reference"),
            notes=data.get("notes"),
            remaining_balance=_decimal(data["remaining_balance"]),
            invoice_status=data["invoice_status"],
            invoice_number=data["invoice_number"],
            customer_name=data["customer_name"],
            created_by=data["created_by"],
            created_at=parse_datetime(data["created_at"]),
            running_balance=_decimal(data.get("running_balance")),
        )


def _apply_timeouts():
    """Bound lock waits and statements for the current transaction (PostgreSQL only)."""
    timeout_ms = getattr(settings, "INVOICING_PAYMENT_TIMEOUT_MS", None)
    if not timeout_ms or connection.vendor != "postgresql":
        return
    with connection.cursor() as cursor:
        # is_local=true: reset when the transaction ends
        cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{int(timeout_ms)}ms"])
        cursor.execute("SELECT set_config('statement_timeout', %s, true)", [f"{int(timeout_ms)}ms"])


# ----------------------------
# Record payment workflow
# ----------------------------
def record_payment(request: RecordPaymentRequest, user_id) -> PaymentResult:
    """
    Record a payment against a Sent invoice as one atomic unit of work.
    Locks the invoice row for the duration.

    Raises InvoiceNotFound, InvoiceNotAcceptingPayments,
    PaymentExceedsBalance or InvalidPaymentError. Nothing is written
    when any of them is raised.
    """
    key = request.idempotency_key
    log = logger.bind(
        invoice_id=str(request.invoice_id),
        idempotency_key=key,
        user_id=str(user_id),
    )

    # Fast path: a retry of a request that already succeeded
    cached = check_idempotency(key, PaymentResult)
    if cached is not None:
        log.info("payment_idempotent_replay", payment_id=str(cached.payment_id))
        return cached

    try:
        # Everything inside either succeeds
        # as one unit or rolls back if something fails
        with transaction.atomic():
            _apply_timeouts()

            # Lock the invoice row until the transaction finishes
            invoice = Invoice.objects.find_by_id(request.invoice_id, for_update=True)
            if invoice is None:
                raise InvoiceNotFound(request.invoice_id)

            # A concurrent request with the same key may have committed
            # while we waited on the lock
            cached = check_idempotency(key, PaymentResult)
            if cached is not None:
                log.info("payment_idempotent_replay", payment_id=str(cached.payment_id))
                return cached

            if not invoice.can_accept_payment():
                raise InvoiceNotAcceptingPayments(invoice.pk, str(invoice.status))
            amount = to_decimal(request.amount, "Payment amount", error_class=InvalidPaymentError)
            if amount is not None and amount > invoice.balance:
                raise PaymentExceedsBalance(invoice.pk, amount, invoice.balance)

            payment = Payment.create_payment(
                invoice_id=invoice.pk,
                payment_date=request.payment_date,
                amount=amount,
                payment_method=request.payment_method,
                reference=request.reference,
                notes=request.notes,
                created_by=user_id,
            )
            validate_payment_against_invoice(payment, invoice)

            # Reduces balance, auto-transitions to Paid when settled
            invoice.apply_payment(payment.amount)

            payment.save()
            invoice.save()

            result = PaymentResult.of(payment, invoice)
            if key:
                store_idempotency(key, result)

            # Fired after commit only
            publish(
                [PaymentRecorded.of(payment, invoice)] + invoice.pull_domain_events(),
                actor=str(user_id),
            )

    except IntegrityError:
        # Lost the race on the idempotency key: return the winner's result
        winner = check_idempotency(key, PaymentResult) if key else None
        if winner is None:
            log.exception("payment_failed")
            raise
        log.info("payment_idempotent_race_lost", payment_id=str(winner.payment_id))
        return winner
    except (ValidationError, ObjectDoesNotExist) as exc:
        log.warning("payment_rejected", error=str(exc), error_code=getattr(exc, "code", None))
        raise
    except Exception:
        log.exception("payment_failed")
        raise

    log.info(
        "payment_recorded",
        payment_id=str(result.payment_id),
        amount=str(result.amount),
        remaining_balance=str(result.remaining_balance),
        invoice_status=result.invoice_status,
    )
    return result
