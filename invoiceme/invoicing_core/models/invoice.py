import dataclasses
import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F, Q

from ..events import (InvoiceBalanceChanged, InvoiceCreated,
                      InvoiceStatusChanged, LineItemAdded, LineItemRemoved,
                      LineItemUpdated)
from ..exceptions import (ConcurrencyConflictError, InvalidInvoiceStateError,
                          InvoiceImmutableError)
from ..managers import InvoiceManager
from ..money import CENT, ZERO, is_settled, quantize_money, to_decimal
from .customer import Customer
from .line_item import LineItem


class InvoiceStatus(models.TextChoices):
    DRAFT = "Draft", "Draft"  # editable, line items can change
    SENT = "Sent", "Sent"  # issued, locked, accepts payments
    PAID = "Paid", "Paid"  # fully settled, terminal


# Current state vs. allowed next states
ALLOWED_TRANSITIONS = {
    InvoiceStatus.DRAFT.value: (InvoiceStatus.SENT,),
    InvoiceStatus.SENT.value: (InvoiceStatus.PAID,),
    InvoiceStatus.PAID.value: (),  # "Paid" → (no further transitions)
}

# Fields that may never change once a stored invoice is Paid
PAID_LOCKED_FIELDS = (
    "customer_id", "invoice_number", "line_items_data", "subtotal",
    "total_discount", "total_tax", "total_amount", "balance",
)


def _reachable_from(status):
    """Statuses reachable from status in one or more transitions."""
    reached = []
    pending = list(ALLOWED_TRANSITIONS.get(str(status), ()))
    while pending:
        nxt = pending.pop()
        if nxt not in reached:
            reached.append(nxt)
            pending.extend(ALLOWED_TRANSITIONS.get(str(nxt), ()))
    return reached


def _money_field():
    return models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))


class Invoice(models.Model):  # Aggregate root: invoice + its line items
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # human-readable (e.g. "INV-2026-0001"), generated by services.numbering
    invoice_number = models.CharField(max_length=50, unique=True)

    # Referenced by id only, invoices never own the customer
    customer = models.ForeignKey(
        Customer,
        # prevent deleting customer who has an invoice
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    issue_date = models.DateField()
    due_date = models.DateField()
    payment_terms = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT
    )

    # Line items are part of the aggregate, stored with it as one JSON array
    line_items_data = models.JSONField(default=list, blank=True, db_column="line_items")

    # Totals are derived from the line items on every mutation
    subtotal = _money_field()
    total_discount = _money_field()
    total_tax = _money_field()
    total_amount = _money_field()
    # Unpaid amount after payments are applied
    balance = _money_field()

    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Optimistic locking: bumped by save() with a compare-and-swap
    version = models.PositiveIntegerField(default=0)

    objects = InvoiceManager()

    class Meta:
        indexes = [
            models.Index(fields=["customer", "status"], name="invoice_customer_status_idx"),
            models.Index(fields=["status", "due_date"], name="invoice_status_due_idx"),
            models.Index(fields=["issue_date"], name="invoice_issue_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="chk_invoice_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(balance__lte=F("total_amount")),
                name="chk_invoice_balance_within_total",
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="chk_invoice_total_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(due_date__gte=F("issue_date")),
                name="chk_invoice_due_after_issue",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    # ------------------------------------
    # Factory
    # ------------------------------------
    @classmethod
    def create_draft(cls, customer_id, issue_date, due_date, payment_terms,
                     invoice_number, notes=None):
        """
        Build a new, unsaved invoice in Draft with zero totals.
        Records an InvoiceCreated event.
        """
        invoice = cls(
            customer_id=customer_id,
            issue_date=issue_date,
            due_date=due_date,
            payment_terms=payment_terms or "",
            invoice_number=invoice_number,
            notes=notes,
            status=InvoiceStatus.DRAFT,
            line_items_data=[],
        )
        invoice._validate_details()
        invoice._record(InvoiceCreated(invoice_id=invoice.pk, customer_id=customer_id))
        return invoice

    # ------------------------------------
    # Domain events (drained by the caller)
    # ------------------------------------
    @property
    def _pending_events(self):
        # not a model field, lives only on this instance
        return self.__dict__.setdefault("_domain_events", [])

    def _record(self, event):
        self._pending_events.append(event)

    def pull_domain_events(self):
        """Return pending events and clear them."""
        events = list(self._pending_events)
        self._pending_events.clear()
        return events

    # ------------------------------------
    # Line items
    # ------------------------------------
    @property
    def line_items(self):
        return tuple(LineItem.from_dict(data) for data in self.line_items_data)

    def _ensure_draft(self, message="Cannot modify line items after invoice is sent"):
        if self.status != InvoiceStatus.DRAFT:
            raise InvoiceImmutableError(message)

    def _set_line_items(self, items):
        self.line_items_data = [item.to_dict() for item in items]
        self.recalc_totals(items)

    def add_line_item(self, item: LineItem):
        self._ensure_draft()
        if not isinstance(item, LineItem):
            raise ValidationError("Line item must be a LineItem")
        items = list(self.line_items)
        if any(existing.id == item.id for existing in items):
            raise ValidationError(f"Line item already exists: {item.id}")
        items.append(item)
        self._set_line_items(items)
        self._record(LineItemAdded(invoice_id=self.pk, line_item_id=item.id, total=item.total))

    def remove_line_item(self, line_item_id):
        self._ensure_draft()
        items = list(self.line_items)
        kept = [item for item in items if item.id != line_item_id]
        if len(kept) == len(items):
            return  # unknown id, nothing to do
        self._set_line_items(kept)
        self._record(LineItemRemoved(invoice_id=self.pk, line_item_id=line_item_id))

    def update_line_item(self, line_item_id, updated: LineItem):
        self._ensure_draft()
        if not isinstance(updated, LineItem):
            raise ValidationError("Line item must be a LineItem")
        items = list(self.line_items)
        for index, item in enumerate(items):
            if item.id == line_item_id:
                # the replacement keeps the slot's id
                items[index] = dataclasses.replace(updated, id=line_item_id)
                self._set_line_items(items)
                self._record(LineItemUpdated(
                    invoice_id=self.pk,
                    line_item_id=line_item_id,
                    total=items[index].total,
                ))
                return
        raise ValidationError(f"Line item not found: {line_item_id}")

    def clear_line_items(self):
        self._ensure_draft()
        removed = self.line_items
        self._set_line_items([])
        for item in removed:
            self._record(LineItemRemoved(invoice_id=self.pk, line_item_id=item.id))

    """ Keep stored totals in sync with the line items """

    def recalc_totals(self, items=None):  # Recompute from scratch every time
        if items is None:
            items = self.line_items
        self.subtotal = sum((item.subtotal for item in items), ZERO)
        self.total_discount = sum((item.discount_amount for item in items), ZERO)
        self.total_tax = sum((item.tax_amount for item in items), ZERO)
        self.total_amount = sum((item.total for item in items), ZERO)
        # Nothing can be paid on a Draft, so balance mirrors the total
        self.balance = self.total_amount

    # ------------------------------------
    # Header fields
    # ------------------------------------
    def update_details(self, customer_id, issue_date, due_date, payment_terms, notes):
        self._ensure_draft("Cannot modify invoice after it is sent")
        self.customer_id = customer_id
        self.issue_date = issue_date
        self.due_date = due_date
        self.payment_terms = payment_terms or ""
        self.notes = notes
        self._validate_details()

    def _validate_details(self):
        if self.customer_id is None:
            raise ValidationError("Customer ID is required")
        if self.issue_date is None:
            raise ValidationError("Issue date is required")
        if self.due_date is None:
            raise ValidationError("Due date is required")
        if self.due_date < self.issue_date:
            raise ValidationError("Due date must be on or after issue date")
        if not self.invoice_number or not self.invoice_number.strip():
            raise ValidationError("Invoice number is required")

    # ------------------------------------
    # Status workflow: Draft → Sent → Paid
    # ------------------------------------
    def transition_to(self, new_status):
        # Look up what states are allowed from current self.status
        if new_status not in ALLOWED_TRANSITIONS.get(str(self.status), ()):
            raise InvalidInvoiceStateError(
                f"Cannot go from {str(self.status)} to {str(new_status)}",
                current_status=self.status,
            )
        old_status = self.status
        self.status = new_status
        self._record(InvoiceStatusChanged(
            invoice_id=self.pk, old_status=str(old_status), new_status=str(new_status)
        ))

    def can_be_sent(self):
        return self.status == InvoiceStatus.DRAFT and bool(self.line_items_data)

    def can_be_paid(self):
        return self.status == InvoiceStatus.SENT and is_settled(self.balance)

    def can_accept_payment(self):
        return self.status == InvoiceStatus.SENT

    def mark_as_sent(self):
        if self.status != InvoiceStatus.DRAFT:
            raise InvalidInvoiceStateError(
                f"Cannot send invoice in {str(self.status)} status. Only Draft invoices can be sent.",
                current_status=self.status,
            )
        if not self.can_be_sent():
            raise InvalidInvoiceStateError(
                "Cannot send invoice without line items", current_status=self.status
            )
        if self.total_amount == ZERO:
            raise InvalidInvoiceStateError(
                "Cannot send invoice with zero total amount", current_status=self.status
            )
        # Outstanding balance starts at the full amount
        self.balance = self.total_amount
        self.transition_to(InvoiceStatus.SENT)

    def mark_as_paid(self):
        if self.status != InvoiceStatus.SENT:
            raise InvalidInvoiceStateError(
                "Can only mark Sent invoices as Paid", current_status=self.status
            )
        if not is_settled(self.balance):
            raise InvalidInvoiceStateError(
                "Cannot mark as Paid with outstanding balance", current_status=self.status
            )
        self.balance = ZERO
        self.transition_to(InvoiceStatus.PAID)

    def apply_payment(self, amount):
        """
        Reduce the balance by amount.
        Moves the invoice to Paid when the balance reaches zero.
        """
        if not self.can_accept_payment():
            raise InvalidInvoiceStateError(
                "Invoice must be in Sent status to accept payments",
                current_status=self.status,
            )
        amount = to_decimal(amount, "Payment amount")
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if amount != amount.quantize(CENT):
            raise ValidationError("Payment amount cannot have more than 2 decimal places")
        if amount > self.balance:
            raise ValidationError("Payment amount cannot exceed invoice balance")

        old_balance = self.balance
        new_balance = quantize_money(old_balance - amount)
        if is_settled(new_balance):
            new_balance = ZERO
        self.balance = new_balance
        self._record(InvoiceBalanceChanged(
            invoice_id=self.pk, old_balance=old_balance, new_balance=new_balance
        ))

        # Auto-transition once fully settled
        if is_settled(self.balance):
            self.mark_as_paid()

    # ------------------------------------
    # Persistence
    # ------------------------------------
    def clean(self):
        if self.due_date and self.issue_date and self.due_date < self.issue_date:
            raise ValidationError({"due_date": "Due date must be on or after issue date"})
        if self.balance is not None and self.balance < 0:
            # otherwise an overpayment could turn into a negative receivable
            raise ValidationError({"balance": "Balance cannot be negative"})
        if (self.balance is not None and self.total_amount is not None
                and self.balance > self.total_amount):
            raise ValidationError({"balance": "Balance cannot exceed total amount"})

        if self._state.adding:
            return
        orig = Invoice.objects.filter(pk=self.pk).first()
        if orig is None:
            return

        # Status only moves forward along the transition table
        if self.status != orig.status and self.status not in _reachable_from(orig.status):
            raise InvalidInvoiceStateError(
                f"Cannot go from {str(orig.status)} to {str(self.status)}",
                current_status=orig.status,
            )

        """ Make paid invoices immutable in all code paths """
        if orig.status == InvoiceStatus.PAID:
            changed_fields = [
                name for name in PAID_LOCKED_FIELDS
                if getattr(orig, name) != getattr(self, name)
            ]
            if changed_fields:
                raise InvoiceImmutableError(
                    f"Cannot modify {changed_fields} on a paid invoice."
                )

    def save(self, *args, **kwargs):
        """
        Validate, then persist with a compare-and-swap on version.
        A stale version raises ConcurrencyConflictError and writes nothing.
        """
        self.full_clean()  # will trigger clean()
        with transaction.atomic():
            if self._state.adding:
                return super().save(*args, **kwargs)

            # Bump the stored version only if it still matches ours
            bumped = Invoice.objects.filter(pk=self.pk, version=self.version).update(
                version=F("version") + 1
            )
            if not bumped:
                actual = (
                    Invoice.objects.filter(pk=self.pk)
                    .values_list("version", flat=True)
                    .first()
                )
                raise ConcurrencyConflictError(self.pk, self.version, actual)
            self.version += 1

            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = set(update_fields) | {"version", "updated_at"}
            return super().save(*args, **kwargs)


class InvoiceNumberSequence(models.Model):
    """Per-year counter behind INV-{YEAR}-{NNNN} numbers."""

    year = models.PositiveIntegerField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.year}: {self.last_value}"
