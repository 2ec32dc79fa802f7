from decimal import Decimal, InvalidOperation
from typing import Union

from hotel_payments.errors import InvalidAmount

MINOR_UNITS_PER_MAJOR = 100

Number = Union[int, float, str, Decimal]


def to_minor_units(amount: Number) -> int:
    """Convert a positive major-unit amount (rupees) to gateway minor units (paise).

    Raises InvalidAmount for non-positive values or values finer than one paisa,
    so the conversion never rounds.
    """
    if isinstance(amount, bool):
        raise InvalidAmount()
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmount()
    if not value.is_finite() or value <= 0:
        raise InvalidAmount()

    minor = value * MINOR_UNITS_PER_MAJOR
    if minor != minor.to_integral_value():
        raise InvalidAmount("Amount cannot have more than two decimal places")
    return int(minor)


def to_major_units(minor: int) -> Decimal:
    return Decimal(int(minor)) / MINOR_UNITS_PER_MAJOR


def json_number(value: Decimal):
    """Decimal to a JSON-friendly number: int when whole, float otherwise."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)
