import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError

from ..money import ZERO, quantize_money, quantize_rate, to_decimal


# ---------- LineItem (value object) ----------
# Lives inside Invoice.line_items_data as JSON, never has its own table.
# "Updating" a line means replacing it by id on the owning invoice.
@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal = ZERO
    tax_rate: Decimal = ZERO
    id: str = ""

    def __post_init__(self):
        # Generate an id when none was supplied
        if not self.id or not str(self.id).strip():
            object.__setattr__(self, "id", str(uuid.uuid4()))

        if self.description is None or not str(self.description).strip():
            raise ValidationError("Description is required")

        # bool is an int subclass, reject it explicitly
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValidationError("Quantity must be a whole number")
        if self.quantity <= 0:
            raise ValidationError("Quantity must be positive")

        unit_price = to_decimal(self.unit_price, "Unit price")
        if unit_price is None or unit_price < 0:
            raise ValidationError("Unit price cannot be negative")

        discount = to_decimal(self.discount_percent, "Discount percent")
        if discount is None:
            discount = ZERO
        if discount < 0 or discount > 1:
            raise ValidationError("Discount percent must be between 0 and 1")

        tax_rate = to_decimal(self.tax_rate, "Tax rate")
        if tax_rate is None:
            tax_rate = ZERO
        if tax_rate < 0:
            raise ValidationError("Tax rate cannot be negative")

        # Normalise scale: money at 2 places, rates at 4
        object.__setattr__(self, "unit_price", quantize_money(unit_price))
        object.__setattr__(self, "discount_percent", quantize_rate(discount))
        object.__setattr__(self, "tax_rate", quantize_rate(tax_rate))

    """ Derived amounts: recomputed on every access, never stored """

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)

    @property
    def discount_amount(self) -> Decimal:
        return quantize_money(self.subtotal * self.discount_percent)

    @property
    def taxable_amount(self) -> Decimal:
        return quantize_money(self.subtotal - self.discount_amount)

    @property
    def tax_amount(self) -> Decimal:
        return quantize_money(self.taxable_amount * self.tax_rate)

    @property
    def total(self) -> Decimal:
        return quantize_money(self.taxable_amount + self.tax_amount)

    # JSON shape stored on the invoice row
    def to_dict(self):
        return {
            "id": self.id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "discount_percent": str(self.discount_percent),
            "tax_rate": str(self.tax_rate),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id", ""),
            description=data.get("description"),
            quantity=data.get("quantity"),
            unit_price=data.get("unit_price"),
            discount_percent=data.get("discount_percent") or ZERO,
            tax_rate=data.get("tax_rate") or ZERO,
        )
