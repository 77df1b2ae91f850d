"""
Domain events raised by the Invoice aggregate and the payment workflow.

Events accumulate on the aggregate while a command runs and are drained
with ``Invoice.pull_domain_events()``. Services hand them to ``publish()``
which fires the Django signals below only after the surrounding database
transaction commits, so receivers never see rolled-back work.
"""
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import structlog
from django.db import transaction
from django.dispatch import Signal
from django.utils import timezone

logger = structlog.get_logger(__name__)

# Event sink: receivers get sender=<event class>, event=<event instance>, actor=<user id or None>
invoice_event = Signal()
payment_recorded = Signal()


def _event_id():
    return str(uuid.uuid4())


@dataclass(frozen=True)
class DomainEvent:
    invoice_id: uuid.UUID
    event_id: str = field(default_factory=_event_id, kw_only=True)
    occurred_at: datetime = field(default_factory=timezone.now, kw_only=True)

    @property
    def event_type(self):
        return type(self).__name__

    def as_dict(self):
        data = asdict(self)
        data["event_type"] = self.event_type
        # JSON-friendly values for audit storage
        for key, value in data.items():
            if isinstance(value, (uuid.UUID, Decimal)):
                data[key] = str(value)
            elif isinstance(value, (date, datetime)):
                data[key] = value.isoformat()
        return data


@dataclass(frozen=True)
class InvoiceCreated(DomainEvent):
    customer_id: uuid.UUID


@dataclass(frozen=True)
class LineItemAdded(DomainEvent):
    line_item_id: str
    total: Decimal


@dataclass(frozen=True)
class LineItemRemoved(DomainEvent):
    line_item_id: str


@dataclass(frozen=True)
class LineItemUpdated(DomainEvent):
    line_item_id: str
    total: Decimal


@dataclass(frozen=True)
class InvoiceStatusChanged(DomainEvent):
    old_status: str
    new_status: str


@dataclass(frozen=True)
class InvoiceBalanceChanged(DomainEvent):
    old_balance: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class PaymentRecorded(DomainEvent):
    payment_id: uuid.UUID
    amount: Decimal
    payment_date: date
    new_balance: Decimal
    new_status: str
    created_by: Optional[str] = None

    @classmethod
    def of(cls, payment, invoice):
        return cls(
            invoice_id=invoice.pk,
            payment_id=payment.pk,
            amount=payment.amount,
            payment_date=payment.payment_date,
            new_balance=invoice.balance,
            new_status=str(invoice.status),
            created_by=payment.created_by,
        )


def _dispatch(events, actor=None):
    for event in events:
        signal = payment_recorded if isinstance(event, PaymentRecorded) else invoice_event
        logger.info(
            "domain_event_dispatched",
            event_type=event.event_type,
            event_id=event.event_id,
            invoice_id=str(event.invoice_id),
        )
        signal.send(sender=type(event), event=event, actor=actor)


def publish(events, actor=None):
    """
    Queue events for dispatch once the current transaction commits.
    Outside a transaction (autocommit) on_commit runs immediately.
    actor is passed through to receivers for audit records.
    """
    events = list(events)
    if not events:
        return
    transaction.on_commit(lambda: _dispatch(events, actor))
