"""Input validation utilities for the KPI API."""
from typing import Any, Optional, Tuple

MIN_YEAR = 2000
MAX_YEAR = 2100


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    # superscripts like "²" pass isdigit() but not int()
    if isinstance(value, str) and value.strip().lstrip('+-').isdecimal():
        return int(value.strip())
    return None


def validate_year(year: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate the ``year`` query parameter.
    Returns (is_valid, error_message). Empty means "all years".
    """
    if year is None or year == '':
        return True, None
    parsed = _parse_int(year)
    if parsed is None:
        return False, "Year must be an integer"
    if not MIN_YEAR <= parsed <= MAX_YEAR:
        return False, f"Year must be between {MIN_YEAR} and {MAX_YEAR}"
    return True, None


def validate_month(month: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate the ``month`` query parameter.
    Returns (is_valid, error_message). Empty means "all months".
    """
    if month is None or month == '':
        return True, None
    parsed = _parse_int(month)
    if parsed is None:
        return False, "Month must be an integer"
    if not 1 <= parsed <= 12:
        return False, "Month must be between 1 and 12"
    return True, None


def validate_period(year: Any, month: Any) -> Tuple[bool, Optional[str]]:
    """Validate both period parameters, reporting the first problem found."""
    is_valid, error = validate_year(year)
    if not is_valid:
        return is_valid, error
    return validate_month(month)


def to_optional_int(value: Any) -> Optional[int]:
    """Convert an already validated parameter, mapping empty to None."""
    if value is None or value == '':
        return None
    return _parse_int(value)
