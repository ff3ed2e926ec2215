"""
Display formatting helpers for API payloads, CLI output and outgoing messages.
Prices are shown in Pakistani Rupees: "Rs 1,234.5".
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import datetime
from typing import Union, Optional


def format_price(value: Union[int, float, Decimal, str, None], symbol: str = 'Rs') -> str:
    """
    Format an amount with thousands grouping and 0-2 decimals.

    Examples:
        format_price(1500) -> "Rs 1,500"
        format_price(1500.5) -> "Rs 1,500.5"
        format_price(Decimal('1234.567')) -> "Rs 1,234.57"
        format_price(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    formatted = f"{num:,.2f}"
    # Drop insignificant trailing zeros ("1,500.00" -> "1,500", "12.50" -> "12.5")
    if '.' in formatted:
        formatted = formatted.rstrip('0').rstrip('.')
    if formatted in ('-0', ''):
        formatted = '0'

    return f"{symbol} {formatted}"


def format_discount(percent: Optional[int]) -> str:
    """Badge text for a discount: "20% off", or empty when there is none."""
    if not percent:
        return ""
    return f"{percent}% off"


def datetime_pk(value: Optional[datetime]) -> str:
    """dd/mm/yyyy HH:MM; "-" for missing values."""
    if value is None:
        return "-"
    return value.strftime('%d/%m/%Y %H:%M')
