"""
Validation utilities for numeric form / JSON input
"""
import math
from decimal import Decimal, InvalidOperation


def normalize_decimal_input(value: str) -> str:
    """
    Normalise a numeric string: trim it and replace a decimal comma with a dot

    Example:
        >>> normalize_decimal_input(" 0,35 ")
        "0.35"
    """
    return value.strip().replace(",", ".")


def parse_non_negative_decimal(value, max_value: Decimal | None = None) -> Decimal:
    """
    Parse int / float / Decimal / str into a finite Decimal >= 0

    Args:
        value: raw input
        max_value: exclusive upper bound (column capacity), None for no bound

    Raises:
        ValueError: not a number, NaN / infinity, negative or too large

    Example:
        >>> parse_non_negative_decimal("120000")
        Decimal('120000')
        >>> parse_non_negative_decimal("-1")
        ValueError: must be >= 0
    """
    if isinstance(value, bool):
        raise ValueError("must be a number")

    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        value = str(value)

    if isinstance(value, str):
        value = normalize_decimal_input(value)

    try:
        decimal_value = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError("must be a number")

    if not decimal_value.is_finite():
        raise ValueError("must be a finite number")
    if decimal_value < 0:
        raise ValueError("must be >= 0")
    if max_value is not None and decimal_value >= max_value:
        raise ValueError(f"must be less than {max_value:,}")
    return decimal_value


def parse_non_negative_int(value, max_value: int | None = None) -> int:
    """
    Parse into a whole number >= 0 ("12", 12, 12.0 are fine; 12.5 is not)

    Raises:
        ValueError: not a whole non-negative number, or >= max_value
    """
    decimal_value = parse_non_negative_decimal(
        value, None if max_value is None else Decimal(max_value)
    )
    if decimal_value != decimal_value.to_integral_value():
        raise ValueError("must be a whole number")
    return int(decimal_value)
