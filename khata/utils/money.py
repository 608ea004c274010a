from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from khata.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# NUMERIC(12, 2)
MAX_DIGITS = 12
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(value) -> Decimal:
    """Quantize a monetary value to two decimal places.

    Floats are rejected so binary rounding never reaches the ledger.
    """
    if isinstance(value, float):
        raise ValidationError("amount must be a decimal string, not a float")

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("amount must be a valid number")

    if not amount.is_finite():
        raise ValidationError("amount must be a finite number")

    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_positive_amount(value) -> Decimal:
    amount = to_money(value)

    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")

    if amount > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}")

    return amount
