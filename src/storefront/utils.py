"""Utility functions for storefront."""

import time
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

MINOR_UNITS_PER_MAJOR = 100

SESSION_ID_PREFIX = "cs_"


def to_decimal(value: Any) -> Decimal:
    """
    Convert a price-like value to Decimal.

    Floats go through their shortest repr so that 19.995 stays 19.995
    instead of the binary approximation.

    Raises:
        ValueError: If the value is not numeric.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    else:
        raise ValueError(f"not a number: {value!r}")

    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a major-unit amount to integer minor units (cents).

    Rounds half to even: 19.995 -> 2000, 19.994 -> 1999.
    """
    cents = (amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    return int(cents)


def from_minor_units(amount: int) -> Decimal:
    """Convert integer minor units back to a major-unit Decimal."""
    return Decimal(amount) / MINOR_UNITS_PER_MAJOR


def is_valid_session_id(session_id: str | None) -> bool:
    """Check a hosted checkout session id against the gateway's prefix convention."""
    if not session_id or not isinstance(session_id, str):
        return False
    return session_id.startswith(SESSION_ID_PREFIX) and len(session_id) > len(SESSION_ID_PREFIX)


def epoch_millis() -> int:
    """Current time in milliseconds, used for placeholder identifiers."""
    return int(time.time() * 1000)


def format_money(amount: Decimal, currency: str) -> str:
    """Format an amount for terminal output, e.g. '1,599.99 USD'."""
    return f"{amount:,.2f} {currency.upper()}"
