from collections.abc import Mapping

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from ..events import publish
from ..exceptions import (ConcurrencyConflictError, CustomerNotFound,
                          InvoiceNotFound)
from ..models import Customer, Invoice, LineItem
from .numbering import next_invoice_number

logger = structlog.get_logger(__name__)


def _as_line_item(value):
    # Accept LineItem instances or plain dicts from the caller
    if isinstance(value, LineItem):
        return value
    if isinstance(value, Mapping):
        return LineItem.from_dict(value)
    raise ValidationError(f"Invalid line item: {value!r}")


def _active_customer(customer_id):
    customer = Customer.objects.find_active(customer_id)
    if customer is None:
        raise CustomerNotFound(customer_id)
    return customer


def _locked_invoice(invoice_id):
    invoice = Invoice.objects.find_by_id(invoice_id, for_update=True)
    if invoice is None:
        raise InvoiceNotFound(invoice_id)
    return invoice


# ----------------------------------------------
# Invoice commands
# ----------------------------------------------
def create_invoice(customer_id, issue_date, line_items, due_date=None,
                   payment_terms="", notes=None, user=None) -> Invoice:
    """Create a Draft invoice with a freshly allocated number."""
    if not line_items:
        raise ValidationError("Invoice must have at least one line item")
    items = [_as_line_item(item) for item in line_items]

    with transaction.atomic():
        customer = _active_customer(customer_id)
        invoice = Invoice.create_draft(
            customer_id=customer.pk,
            issue_date=issue_date,
            # Due on receipt unless told otherwise
            due_date=due_date or issue_date,
            payment_terms=payment_terms,
            invoice_number=next_invoice_number(),
            notes=notes,
        )
        for item in items:
            invoice.add_line_item(item)
        invoice.save()
        publish(invoice.pull_domain_events(), actor=user)

    logger.info(
        "invoice_created",
        invoice_id=str(invoice.pk),
        invoice_number=invoice.invoice_number,
        total_amount=str(invoice.total_amount),
    )
    return invoice


def update_invoice(invoice_id, version, customer_id, issue_date, line_items,
                   due_date=None, payment_terms="", notes=None, user=None) -> Invoice:
    """
    Replace a Draft invoice's details and line items.
    version is the one the caller last read; a stale one is rejected.
    """
    if not line_items:
        raise ValidationError("Invoice must have at least one line item")
    items = [_as_line_item(item) for item in line_items]

    with transaction.atomic():
        invoice = _locked_invoice(invoice_id)
        if invoice.version != version:
            raise ConcurrencyConflictError(invoice.pk, version, invoice.version)
        customer = _active_customer(customer_id)

        invoice.update_details(
            customer_id=customer.pk,
            issue_date=issue_date,
            due_date=due_date or issue_date,
            payment_terms=payment_terms,
            notes=notes,
        )
        invoice.clear_line_items()
        for item in items:
            invoice.add_line_item(item)
        invoice.save()
        publish(invoice.pull_domain_events(), actor=user)

    logger.info("invoice_updated", invoice_id=str(invoice.pk), version=invoice.version)
    return invoice


"""Move invoice from Draft → Sent (after validation)."""


def send_invoice(invoice_id, user=None) -> Invoice:
    with transaction.atomic():
        invoice = _locked_invoice(invoice_id)
        invoice.mark_as_sent()
        invoice.save()
        publish(invoice.pull_domain_events(), actor=user)

    logger.info(
        "invoice_sent",
        invoice_id=str(invoice.pk),
        invoice_number=invoice.invoice_number,
        balance=str(invoice.balance),
    )
    return invoice
