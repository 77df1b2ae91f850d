import structlog
from django.db import transaction
from django.utils import timezone

from ..models import InvoiceNumberSequence

logger = structlog.get_logger(__name__)

NUMBER_FORMAT = "INV-{year}-{value:04d}"


def next_invoice_number(on_date=None) -> str:
    """
    Allocate the next number for the year of on_date (default today),
    e.g. INV-2026-0001. The counter row is locked while it is bumped so
    concurrent callers never get the same number.
    """
    year = (on_date or timezone.localdate()).year
    with transaction.atomic():
        sequence, _ = InvoiceNumberSequence.objects.get_or_create(year=year)
        sequence = InvoiceNumberSequence.objects.select_for_update().get(pk=sequence.pk)
        sequence.last_value += 1
        sequence.save(update_fields=["last_value"])
    number = NUMBER_FORMAT.format(year=year, value=sequence.last_value)
    logger.debug("invoice_number_allocated", invoice_number=number)
    return number
