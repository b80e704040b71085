"""
Module: admissions_kernel.db.types
Responsibility: Annotated type aliases and the money helpers every model and
    service shares.  Centralizes precision and rounding so that the
    classifier, the aggregator and the cashbook agree to the paisa.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Amounts are Decimal, stored as Numeric(38, 9).
    - round_money() is the ONLY sanctioned rounding function for amounts.
    - clamp_non_negative() implements every "due" field: max(0, x).

Failure modes:
    - decimal.InvalidOperation from to_money() on non-numeric input.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any

from sqlalchemy import Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings (codes, enum values)
ShortCode = Annotated[str, String(50)]

# Long text for descriptions
LongText = Annotated[str, String(2000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value: Any) -> Decimal:
    """
    Coerce a request value (int, str, Decimal, None) into a Decimal amount.

    Floats are routed through ``str`` so that 0.1 becomes Decimal("0.1")
    rather than its binary expansion.  ``None`` is treated as zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for amounts in the
    kernel.  Aggregates read back from the database pass through here so
    that backends without a native decimal type (SQLite) still produce
    exact, comparable values.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return to_money(value).quantize(Decimal(quantize_str), rounding=rounding)


def clamp_non_negative(value: Decimal) -> Decimal:
    """max(0, value), rounded."""
    return round_money(value if value > ZERO else ZERO)
