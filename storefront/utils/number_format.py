"""Number parsing utilities for prices coming from forms, JSON and the database."""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal('0.01')
PRICE_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")


def to_price(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Normalize a price-like value into a Decimal.

    Accepts Decimal, int, float and strings such as "1,250.50" or "Rs 900".
    Floats go through str() so 0.1 stays 0.1. None and blank strings return
    ``default``.

    Raises:
        ValueError: if the value is not a number.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f'Invalid price: {value!r}')
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    cleaned = str(value).strip()
    if cleaned.lower().startswith('rs'):
        cleaned = cleaned[2:].strip()
    if not cleaned:
        return default

    if not PRICE_PATTERN.match(cleaned):
        raise ValueError(f'Invalid price: {value!r}')
    try:
        return Decimal(cleaned.replace(',', ''))
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid price: {value!r}')


def to_positive_price(value: Any) -> Optional[Decimal]:
    """Price override semantics: missing, zero or negative means "no override"."""
    price = to_price(value)
    if price is None or price <= 0:
        return None
    return price


def quantize_money(value: Decimal) -> Decimal:
    """Round to the currency minor unit (half up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_quantity(value: Any) -> int:
    """
    Parse a cart/order quantity.

    Raises:
        ValueError: if the value is not a whole number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError('Quantity must be a whole number')
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError('Quantity must be a whole number')
    if number != number.to_integral_value():
        raise ValueError('Quantity must be a whole number')
    return int(number)
