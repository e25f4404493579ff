# accounting/money.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from accounting.exceptions import ValidationError

MONEY_Q = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value, field: str = "amount") -> Decimal:
    """Coerce to a Decimal rounded to cents (half-up)."""
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(MONEY_Q, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a decimal number.", {"field": field})


def require_positive(value, field: str = "amount") -> Decimal:
    amount = to_money(value, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero.", {"field": field})
    return amount
