"""Lenient conversions for values read from spreadsheets, CSV and JSON."""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def is_blank(value: Any) -> bool:
    """True for None, empty/whitespace strings and float NaN (pandas' missing marker)."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def safe_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert a cell value to Decimal.

    Thousands separators and a trailing percent sign are dropped, so
    ``"1,250.5"`` and ``"95%"`` both parse.

    Args:
        value: Value to convert
        default: Returned for blank or unparseable input

    Returns:
        Decimal value or default

    Examples:
        >>> safe_decimal("1,250.50")
        Decimal('1250.50')
        >>> safe_decimal(0.1)
        Decimal('0.1')
        >>> safe_decimal(float("nan")) is None
        True
    """
    if is_blank(value):
        return default

    if isinstance(value, Decimal):
        return default if value.is_nan() else value

    if isinstance(value, bool):
        return default

    try:
        if isinstance(value, float):
            # str() first so 0.1 stays 0.1
            return Decimal(str(value))
        if isinstance(value, int):
            return Decimal(value)
        text = str(value).strip().replace(",", "").rstrip("%").strip()
        result = Decimal(text)
    except (ValueError, TypeError, InvalidOperation):
        return default
    return default if result.is_nan() else result


def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """
    Convert a cell value to int, accepting integral floats such as ``42.0``.

    Examples:
        >>> safe_int("42")
        42
        >>> safe_int(42.0)
        42
        >>> safe_int("T42") is None
        True
    """
    if is_blank(value):
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value

    number = safe_decimal(value)
    if number is None or number != number.to_integral_value():
        return default
    return int(number)


def safe_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Stripped string form of a cell value, or default when blank.

    Integral floats lose their ``.0`` (pandas reads numeric id columns as float).
    """
    if is_blank(value):
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
