"""
Field parsers for request payloads.

Every value arriving from a caller passes through one of these before it
reaches a service.  Each parser either returns a clean Python value or raises
ValidationError (InvalidAmountError for amounts) carrying a field error, so
bad input always maps to a 422 with ``fieldErrors`` and never escapes as a
raw ``decimal`` or ``ValueError``.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from admissions_kernel.db.types import ZERO, round_money, to_money
from admissions_kernel.exceptions import InvalidAmountError, ValidationError

_FLAG_STRINGS = {"true": True, "false": False}


def _invalid(field_name: str, value: Any, message: str) -> ValidationError:
    return ValidationError(
        f"Invalid {field_name}: {value!r}",
        field_errors=[{"field": field_name, "message": message}],
    )


def _required(field_name: str) -> ValidationError:
    return ValidationError(
        f"{field_name} is required",
        field_errors=[{"field": field_name, "message": "Required"}],
    )


def parse_amount(value: Any, field_name: str, *, positive: bool = True) -> Decimal:
    """
    Money amount rounded to 2 places.

    The sign check runs on the rounded value, so an amount that rounds to
    zero is not positive.  ``None`` counts as zero.
    """
    try:
        amount = to_money(value)
        if not amount.is_finite():
            raise _invalid(field_name, value, "Must be a finite number")
        amount = round_money(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise _invalid(field_name, value, "Must be a number") from None
    if amount < ZERO or (positive and amount == ZERO):
        raise InvalidAmountError(field_name, value)
    return amount


def parse_flag(value: Any, field_name: str, default: bool = False) -> bool:
    """Real booleans, or the strings "true"/"false" from form posts."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _FLAG_STRINGS:
        return _FLAG_STRINGS[value.strip().lower()]
    raise _invalid(field_name, value, "Must be true or false")


def parse_uuid(value: Any, field_name: str, *, required: bool = False) -> UUID | None:
    if value in (None, ""):
        if required:
            raise _required(field_name)
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise _invalid(field_name, value, "Must be a UUID") from None


def parse_date(value: Any, field_name: str, default: date | None = None) -> date:
    """ISO date (a datetime keeps its date part); ``default`` fills a blank value."""
    if value in (None, ""):
        if default is None:
            raise _required(field_name)
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise _invalid(field_name, value, "Must be an ISO date") from None


def clean_ref(value: Any) -> str | None:
    """Trimmed transaction reference; blank means no reference."""
    if value is None:
        return None
    ref = str(value).strip()
    return ref or None
