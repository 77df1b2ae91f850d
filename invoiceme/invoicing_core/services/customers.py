import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import CustomerNotFound
from ..models import Customer
from .audit_helper import log_action

logger = structlog.get_logger(__name__)

# Fields a caller may change on an existing customer
UPDATABLE_FIELDS = (
    "name", "email", "phone", "street", "city", "state", "postal_code", "country",
)


def _get_active(customer_id):
    customer = Customer.objects.find_active(customer_id)
    if customer is None:
        raise CustomerNotFound(customer_id)
    return customer


def create_customer(name, email, phone="", street="", city="", state="",
                    postal_code="", country="", user=None) -> Customer:
    with transaction.atomic():
        customer = Customer(
            name=name,
            email=(email or "").strip().lower(),
            phone=phone or "",
            street=street or "",
            city=city or "",
            state=state or "",
            postal_code=postal_code or "",
            country=country or "",
        )
        customer.save()
        log_action(
            action="CustomerCreated",
            object_type="Customer",
            object_id=customer.pk,
            actor=user,
            changes={"name": customer.name, "email": customer.email},
        )
    logger.info("customer_created", customer_id=str(customer.pk))
    return customer


def update_customer(customer_id, user=None, **changes) -> Customer:
    """Partial update: only the given fields change."""
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown customer fields: {sorted(unknown)}")

    with transaction.atomic():
        customer = _get_active(customer_id)
        before = {field: getattr(customer, field) for field in changes}
        for field, value in changes.items():
            if field == "email" and value:
                value = value.strip().lower()
            setattr(customer, field, value if value is not None else "")
        customer.save()
        log_action(
            action="CustomerUpdated",
            object_type="Customer",
            object_id=customer.pk,
            actor=user,
            changes={
                field: {"from": before[field], "to": getattr(customer, field)}
                for field in changes
            },
        )
    logger.info("customer_updated", customer_id=str(customer.pk), fields=sorted(changes))
    return customer


def delete_customer(customer_id, user=None) -> Customer:
    """Soft delete; existing invoices keep their reference."""
    with transaction.atomic():
        customer = Customer.objects.filter(pk=customer_id).first()
        if customer is None:
            raise CustomerNotFound(customer_id)
        customer.soft_delete()
        log_action(
            action="CustomerDeleted",
            object_type="Customer",
            object_id=customer.pk,
            actor=user,
        )
    logger.info("customer_deleted", customer_id=str(customer.pk))
    return customer
