"""
Formatting utilities for user-facing messages.
Numbers and money in Indian style (lakh/crore grouping).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional


def _group_indian(integer_part: str) -> str:
    """Group digits as 12,34,567: last three, then pairs."""
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ','.join(pairs + [tail])


def num_in(value: Union[int, float, Decimal, str, None], decimals: Optional[int] = None) -> str:
    """
    Format a number with Indian digit grouping.

    Args:
        value: Number to format
        decimals: Fixed decimal places (None = as needed, trailing zeros dropped)

    Returns:
        Formatted string, "-" for empty or invalid values

    Examples:
        num_in(1500) -> "1,500"
        num_in(123456.5) -> "1,23,456.5"
        num_in(12345678) -> "1,23,45,678"
        num_in(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if not num.is_finite():
        return "-"

    if decimals is not None:
        num = num.quantize(Decimal(10) ** -decimals, rounding=ROUND_HALF_UP)
        num_str = f"{abs(num):.{decimals}f}"
    else:
        num_str = f"{abs(num):f}"

    if '.' in num_str:
        integer_part, decimal_part = num_str.split('.')
        if decimals is None:
            decimal_part = decimal_part.rstrip('0')
    else:
        integer_part, decimal_part = num_str, ""

    sign = '-' if num < 0 else ''
    grouped = _group_indian(integer_part)
    if decimal_part:
        return f"{sign}{grouped}.{decimal_part}"
    return f"{sign}{grouped}"


def money_inr(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format a rupee amount with exactly 2 decimals.

    Examples:
        money_inr(1500) -> "₹1,500.00"
        money_inr(123456.789) -> "₹1,23,456.79"
        money_inr(None) -> "-"
    """
    formatted = num_in(value, decimals=2)
    if formatted == "-":
        return formatted
    if formatted.startswith('-'):
        return f"-₹{formatted[1:]}"
    return f"₹{formatted}"

