"""
Currency and Decimal Precision Module

Coercion and rounding helpers every loan calculation goes through.
NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union

# High precision for intermediate annuity math
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0')

Numeric = Union[Decimal, int, float, str]


def to_decimal(value: Numeric) -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. NaN and infinities are
    rejected because no loan amount can be non-finite.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to Decimal")
    else:
        raise ValueError(f"Cannot convert {type(value).__name__} to Decimal")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def quantize_amount(value: Decimal, precision: int = 2) -> Decimal:
    """Round to the currency minor unit, half away from zero"""
    return value.quantize(Decimal('0.1') ** precision, rounding=ROUND_HALF_UP)


def amounts_match(left: Decimal, right: Decimal, epsilon: Decimal = CENT) -> bool:
    """True when two amounts agree within the rounding epsilon"""
    return abs(left - right) <= epsilon
