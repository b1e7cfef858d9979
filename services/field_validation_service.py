"""
Field validation for parsed menu items.

Pure functions, no I/O. Dispatch happens on the field's kind tag
(see models.menu_upload.FIELD_KINDS), then on the per-field rule.

Rules:
    name                  required, at most 100 characters
    price                 optional, number >= 0
    wine_vintage          optional, whole year in [1000, current year + 10]
    dietary flags         optional, a boolean or "true"/"false"/"yes"/"no"/"1"/"0"
    wine_serving_options  list or null (options are checked one by one)
    serving option size   required
    serving option price  optional, number >= 0
Everything else is accepted as-is.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from models.menu_upload import FIELD_KINDS, FieldKind

NAME_MAX_LENGTH = 100
VINTAGE_MIN_YEAR = 1000
VINTAGE_MAX_YEARS_AHEAD = 10


@dataclass(frozen=True)
class FieldValidationResult:
    is_valid: bool
    error_message: Optional[str] = None


VALID = FieldValidationResult(is_valid=True)


def _invalid(message: str) -> FieldValidationResult:
    return FieldValidationResult(is_valid=False, error_message=message)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a user-entered number.

    Accepts ints, floats and numeric strings ("12", " 4.50 ").
    Returns None for anything else, including booleans, NaN and infinity.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


_FLAG_WORDS = {
    "true": True, "yes": True, "1": True,
    "false": False, "no": False, "0": False,
}


def parse_flag(value: Any) -> Optional[bool]:
    """
    Read a dietary flag.

    Blank means not set (False). Returns None when the value is not
    recognizable as yes or no.
    """
    if _is_blank(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        return _FLAG_WORDS.get(value.strip().lower())
    return None


# ===================
# FIELD RULES
# ===================

def _validate_name(value: Any) -> FieldValidationResult:
    if _is_blank(value):
        return _invalid("Name is required.")
    if len(str(value)) > NAME_MAX_LENGTH:
        return _invalid(f"Name cannot exceed {NAME_MAX_LENGTH} characters.")
    return VALID


def _validate_price(value: Any, today: Optional[date] = None) -> FieldValidationResult:
    if _is_blank(value):
        return VALID
    number = parse_number(value)
    if number is None:
        return _invalid("Price must be a valid number.")
    if number < 0:
        return _invalid("Price cannot be negative.")
    return VALID


def _validate_vintage(value: Any, today: Optional[date] = None) -> FieldValidationResult:
    if _is_blank(value):
        return VALID
    max_year = (today or date.today()).year + VINTAGE_MAX_YEARS_AHEAD
    number = parse_number(value)
    if number is None:
        return _invalid("Vintage must be a valid year.")
    if not number.is_integer():
        return _invalid("Vintage must be a whole year.")
    if number < VINTAGE_MIN_YEAR or number > max_year:
        return _invalid(f"Vintage must be between {VINTAGE_MIN_YEAR} and {max_year}.")
    return VALID


def _validate_flag(value: Any) -> FieldValidationResult:
    if parse_flag(value) is None:
        return _invalid("Must be yes or no.")
    return VALID


def _validate_serving_options_shape(value: Any) -> FieldValidationResult:
    if value is None or isinstance(value, list):
        return VALID
    return _invalid("Serving options must be a list.")


_NUMERIC_RULES = {
    "price": _validate_price,
    "wine_vintage": _validate_vintage,
}


def validate_field(
    field_name: str,
    value: Any,
    today: Optional[date] = None
) -> FieldValidationResult:
    """
    Validate a single menu item field.

    Args:
        field_name: One of the menu item field names
        value: Value as entered or extracted
        today: Reference date for the vintage upper bound (defaults to today)

    Returns:
        FieldValidationResult with is_valid and an optional error message
    """
    kind = FIELD_KINDS.get(field_name)

    if kind is FieldKind.NUMERIC:
        rule = _NUMERIC_RULES.get(field_name)
        return rule(value, today) if rule else VALID

    if kind is FieldKind.SERVING_OPTIONS:
        return _validate_serving_options_shape(value)

    if kind is FieldKind.FLAG:
        return _validate_flag(value)

    if field_name == "name":
        return _validate_name(value)

    return VALID


# ===================
# SERVING OPTIONS
# ===================

def validate_serving_option_size(size: Any) -> FieldValidationResult:
    if _is_blank(size) or not isinstance(size, str):
        return _invalid("Size is required.")
    return VALID


def validate_serving_option_price(price: Any) -> FieldValidationResult:
    # Same rule as the item price: blank allowed, otherwise a number >= 0
    return _validate_price(price)


def validate_serving_option(size: Any, price: Any) -> tuple[FieldValidationResult, FieldValidationResult]:
    """Validate both halves of a serving option independently."""
    return validate_serving_option_size(size), validate_serving_option_price(price)
