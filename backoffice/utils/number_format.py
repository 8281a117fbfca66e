"""Number parsing utilities for Indian rupee formats."""
import re
from decimal import Decimal, InvalidOperation

ZERO = Decimal('0')
TWO_PLACES = Decimal('0.01')
# Largest amount the app handles; beyond it 2-place quantize may overflow
MAX_AMOUNT = Decimal('1e15')

# 1,23,45,678.90 (lakh/crore grouping), 12,345 or plain 12345.5
INR_NUMBER_PATTERN = re.compile(r"^(?:\d{1,2}(?:,\d{2})*,\d{3}|\d+)(?:\.\d+)?$")
CURRENCY_PREFIX = re.compile(r"^(?:₹|rs\.?|inr)\s*", re.IGNORECASE)


def _normalize(value: str) -> str:
    cleaned = CURRENCY_PREFIX.sub('', value.strip())
    if not INR_NUMBER_PATTERN.match(cleaned):
        raise ValueError('Invalid number. Use 1,23,456.78 or 123456.78')
    return cleaned.replace(',', '')


def parse_inr_amount(value) -> Decimal:
    """
    Parse a monetary value typed by a user (e.g. "₹1,23,456.78") to Decimal.

    Rules:
    - Optional currency prefix: ₹, Rs, Rs. or INR
    - Thousands grouping: Indian (1,23,456) or none
    - Decimal separator: dot (.)
    - No negatives

    Raises:
        ValueError: if the value is empty, malformed or negative.
    """
    if value is None:
        raise ValueError('Invalid number. Use 1,23,456.78 or 123456.78')

    if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        decimal_value = Decimal(value)
    elif isinstance(value, float):
        decimal_value = Decimal(str(value))
    else:
        cleaned = str(value).strip()
        if not cleaned:
            raise ValueError('Invalid number. Use 1,23,456.78 or 123456.78')
        if cleaned.startswith('-'):
            raise ValueError('Value cannot be negative')
        try:
            decimal_value = Decimal(_normalize(cleaned))
        except InvalidOperation:
            raise ValueError('Invalid number. Use 1,23,456.78 or 123456.78')

    if not decimal_value.is_finite():
        raise ValueError('Invalid number. Use 1,23,456.78 or 123456.78')
    if decimal_value < 0:
        raise ValueError('Value cannot be negative')

    return decimal_value.quantize(TWO_PLACES)


def parse_quantity(value) -> int:
    """
    Parse a unit count. Quantities are whole units, at least 1.

    Raises:
        ValueError: if the value is not a positive whole number.
    """
    if isinstance(value, bool):
        raise ValueError('Please enter a valid quantity greater than 0')
    try:
        qty = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError('Please enter a valid quantity greater than 0')
    if not qty.is_finite() or qty != qty.to_integral_value() or qty <= 0:
        raise ValueError('Please enter a valid quantity greater than 0')
    return int(qty)


def coerce_decimal(value) -> Decimal:
    """
    Lenient conversion used by pricing math and API payload parsing.

    Anything that is not a finite, non-negative number no larger than
    MAX_AMOUNT becomes 0.
    Never raises.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        if isinstance(value, Decimal):
            num = value
        elif isinstance(value, (int, float)):
            num = Decimal(str(value))
        else:
            cleaned = str(value).strip()
            if not cleaned:
                return ZERO
            try:
                num = Decimal(_normalize(cleaned))
            except ValueError:
                num = Decimal(cleaned)
    except (InvalidOperation, ValueError, TypeError):
        return ZERO

    if not num.is_finite() or num < 0 or num > MAX_AMOUNT:
        return ZERO
    return num
