"""
Typed input boundary.

Every raw value coming from operators (form fields, CSV cells, JSON bodies)
passes through these parsers exactly once before it reaches a service.
Unparseable input raises a ValidationError subclass; it is never coerced to
zero.  Downstream code may assume Decimal / int / date / Shift values.
"""

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from mill_kernel.exceptions import (
    InvalidFieldError,
    InvalidQuantityError,
    InvalidShiftError,
    InvalidUnitError,
    MissingFieldError,
)
from mill_kernel.models.production_entry import Shift

DEFAULT_UNITS: tuple[int, ...] = (1, 2)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_quantity(
    value: Any,
    field: str,
    *,
    required: bool = False,
    positive: bool = False,
) -> Decimal | None:
    """
    Parse a non-negative production or configuration figure.

    Blank input yields None unless ``required``.  With ``positive`` the value
    must be strictly greater than zero (machine ratings).
    """
    if _is_blank(value):
        if required:
            raise MissingFieldError(field)
        return None

    if isinstance(value, bool):
        raise InvalidQuantityError(field, value, "boolean is not a quantity")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidQuantityError(field, value, "not a finite number")
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidQuantityError(field, value, "not a number") from None
    else:
        raise InvalidQuantityError(field, value, f"unsupported type {type(value).__name__}")

    if not result.is_finite():
        raise InvalidQuantityError(field, value, "not a finite number")
    if result < 0:
        raise InvalidQuantityError(field, value, "must not be negative")
    if positive and result == 0:
        raise InvalidQuantityError(field, value, "must be greater than zero")
    return result


def parse_count(value: Any, field: str, *, required: bool = False) -> int | None:
    """Parse a non-negative whole number (spindle counts)."""
    quantity = parse_quantity(value, field, required=required)
    if quantity is None:
        return None
    if quantity != quantity.to_integral_value():
        raise InvalidQuantityError(field, value, "must be a whole number")
    return int(quantity)


def parse_machine_number(value: Any) -> int:
    """Parse a positive machine number."""
    number = parse_count(value, "machine_number", required=True)
    if number == 0:
        raise InvalidFieldError("machine_number", value, "must be positive")
    return number


def parse_unit(value: Any, allowed: tuple[int, ...] = DEFAULT_UNITS) -> int:
    """Parse a production unit and check it is one of ``allowed``."""
    if _is_blank(value):
        raise MissingFieldError("unit")
    if isinstance(value, bool):
        raise InvalidUnitError(value, allowed)
    try:
        unit = int(value.strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise InvalidUnitError(value, allowed) from None
    if isinstance(value, float) and unit != value:
        raise InvalidUnitError(value, allowed)
    if unit not in allowed:
        raise InvalidUnitError(value, allowed)
    return unit


def parse_shift(value: Any) -> Shift:
    """Parse a shift name, case-insensitively."""
    if isinstance(value, Shift):
        return value
    if _is_blank(value):
        raise MissingFieldError("shift")
    if not isinstance(value, str):
        raise InvalidShiftError(value)
    try:
        return Shift(value.strip().lower())
    except ValueError:
        raise InvalidShiftError(value) from None


def parse_entry_date(value: Any, field: str = "entry_date") -> date:
    """
    Parse a calendar date from a date, an ISO ``YYYY-MM-DD`` string or a
    full ISO timestamp.  The whole string must parse.
    """
    if _is_blank(value):
        raise MissingFieldError(field)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            raise InvalidFieldError(field, value, "expected YYYY-MM-DD") from None
    raise InvalidFieldError(field, value, "expected a date")


def parse_text(value: Any, field: str, *, max_length: int = 100) -> str | None:
    """Trim free text; blank becomes None."""
    if _is_blank(value):
        return None
    if not isinstance(value, str):
        raise InvalidFieldError(field, value, "expected text")
    text = value.strip()
    if len(text) > max_length:
        raise InvalidFieldError(field, value, f"longer than {max_length} characters")
    return text
