from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

# Type alias for money values
Money = Decimal

ZERO = Decimal("0")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money(10.124)
        Decimal('10.12')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(value: Any) -> Decimal:
    """
    Parse a stored decimal-string into a Decimal, treating anything unusable as zero.

    Examples:
        >>> parse_amount("50000")
        Decimal('50000')
        >>> parse_amount("")
        Decimal('0')
        >>> parse_amount("abc")
        Decimal('0')
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return ZERO
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed


def format_amount(value: Decimal) -> str:
    """Render a computed amount as a plain decimal-string without trailing zeros."""
    if value == 0:
        return "0"
    return f"{value.normalize():f}"


def to_amount_string(value: Any) -> str:
    """Coerce a submitted financial field to its stored decimal-string form."""
    if value is None:
        return "0"
    if isinstance(value, str):
        text = value.strip()
        return text or "0"
    return format_amount(parse_amount(value))
