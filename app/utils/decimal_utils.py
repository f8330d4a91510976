# app/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

from app.core.config import CURRENCY_SUFFIX

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_currency(amount) -> str:
    """Format with dot thousands separators, e.g. 1500000 -> '1.500.000 VNĐ'."""
    amount = to_decimal(amount)
    whole = int(amount)
    text = f"{whole:,}".replace(",", ".")
    fraction = amount - whole
    if fraction:
        text += "," + f"{fraction:.2f}"[2:]
    return f"{text} {CURRENCY_SUFFIX}"
