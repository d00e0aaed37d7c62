"""
Module: gl_kernel.db.types
Responsibility: Annotated type aliases and conversion helpers for monetary
    columns.  Centralizes precision and rounding so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    stores/, services/ and selectors/.  MUST NOT import from any of those.

CRITICAL: No floats anywhere in the kernel.  Callers may hand in floats
(the surrounding application is loosely typed); to_money() converts them
through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.

Failure modes:
    - ValueError on values that are not numbers, or are NaN/infinite.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Largest |debits - credits| still treated as balanced.
DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """
    Convert an input amount to Decimal.

    None is treated as zero (the surrounding application omits zero
    debit/credit columns).

    Raises:
        ValueError: If value is not a finite number.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Monetary amount must be finite: {value!r}")
    return result

