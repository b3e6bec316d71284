"""
Module: agency_kernel.db.types
Responsibility: Decimal coercion and the rounding helper for monetary
    values.  Centralizes precision and rounding so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_whole() is the ONLY sanctioned rounding function for converted
      and displayed amounts.  It rounds half away from zero.
    - No floats for money.  Amounts arriving as float or str are coerced to
      Decimal through to_decimal() before any arithmetic.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Floats go through ``str()`` so that 0.1 becomes Decimal("0.1") rather
    than its binary expansion.

    Raises:
        ValueError: If value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValueError(f"Not a numeric amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def round_whole(value: Any) -> int:
    """Round a monetary value to whole units, half away from zero."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=DEFAULT_ROUNDING))
