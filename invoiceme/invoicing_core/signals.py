from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .events import PaymentRecorded, invoice_event, payment_recorded
from .exceptions import InvalidPaymentError
from .models import Invoice, InvoiceStatus, Payment
from .services.audit_helper import log_action

""" Block invoice deletion once it has been sent."""


# pre_delete signal auto-fires just before Django deletes a model instance
# it’s connected to the Invoice model
@receiver(pre_delete, sender=Invoice)
# Receiver function receives instance (Invoice being deleted)
def prevent_delete_issued_invoice(sender, instance, **kwargs):
    # Invoices with payments are already covered by on_delete=PROTECT
    if instance.status != InvoiceStatus.DRAFT:
        # prevent delete
        raise ValidationError("Cannot delete an invoice that has been sent.")


"""Block payment deletion, including bulk QuerySet.delete()."""


@receiver(pre_delete, sender=Payment)
def prevent_delete_payment(sender, instance, **kwargs):
    raise InvalidPaymentError("Payments cannot be deleted")


"""
    Event sink: every domain event lands in the audit log.
    Fired after commit, so only committed work is recorded.
"""


@receiver(invoice_event)
def audit_invoice_event(sender, event, actor=None, **kwargs):
    log_action(
        action=event.event_type,
        object_type="Invoice",
        object_id=event.invoice_id,
        actor=actor,
        changes=event.as_dict(),
    )


@receiver(payment_recorded, sender=PaymentRecorded)
def audit_payment_recorded(sender, event, actor=None, **kwargs):
    log_action(
        action=event.event_type,
        object_type="Payment",
        object_id=event.payment_id,
        actor=actor or event.created_by,
        changes=event.as_dict(),
    )
