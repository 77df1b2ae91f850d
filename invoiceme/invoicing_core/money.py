from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

# Every stored amount is kept at 2 decimal places
CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Rates (discount percent, tax rate) keep 4 decimal places
RATE_PLACES = Decimal("0.0001")

# A balance whose absolute value is below this counts as settled.
# Absorbs rounding residue from the discount/tax pipeline.
ROUNDING_TOLERANCE = Decimal("0.01")


def to_decimal(value, field="amount", error_class=ValidationError):
    """
    Coerce int/str/Decimal input to Decimal.
    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise error_class(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise error_class(f"{field} must be a number")
    if not result.is_finite():
        raise error_class(f"{field} must be a finite number")
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def is_settled(balance: Decimal) -> bool:
    """True when the balance is zero within ROUNDING_TOLERANCE."""
    return abs(balance) < ROUNDING_TOLERANCE


def format_money(value: Decimal) -> str:
    # Used in user-facing messages, e.g. "$486.00"
    return f"${quantize_money(value)}"
