"""
Validation utilities for amounts, currencies and calendar dates
"""
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from flowmoney.domain.errors import InvariantViolation

_CURRENCY_RE = re.compile(r"[A-Z]{3}")


def normalize_decimal_input(value) -> str:
    """
    Normalize an amount: accept numbers or strings, comma as decimal separator

    Example:
        >>> normalize_decimal_input("100,50")
        "100.50"
        >>> normalize_decimal_input(12.5)
        "12.5"
    """
    return str(value).strip().replace(",", ".")


def validate_decimal_amount(value, max_decimal_places: int = 2) -> tuple[bool, str | None]:
    """
    Check that ``value`` is a syntactically valid money amount

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_decimal_amount("100.50")
        (True, None)
        >>> validate_decimal_amount("100.505")
        (False, "At most 2 decimal places")
    """
    normalized = normalize_decimal_input(value)

    try:
        decimal_value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        return False, "Invalid amount"

    if not decimal_value.is_finite():
        return False, "Invalid amount"

    pattern = rf"^-?\d+(\.\d{{1,{max_decimal_places}}})?$"
    if not re.match(pattern, normalized):
        return False, f"At most {max_decimal_places} decimal places"

    return True, None


def parse_amount(value, *, field: str = "amount", allow_zero: bool = False) -> Decimal:
    """
    Coerce to Decimal and enforce sign rules

    Raises:
        InvariantViolation: malformed, negative, or zero when not allowed
    """
    if value is None or value == "":
        raise InvariantViolation(f"Valid {field} is required")

    is_valid, error = validate_decimal_amount(value)
    if not is_valid:
        raise InvariantViolation(f"{field}: {error}")

    amount = Decimal(normalize_decimal_input(value))
    if amount < 0 or (amount == 0 and not allow_zero):
        comparison = "zero or greater" if allow_zero else "greater than zero"
        raise InvariantViolation(f"{field} must be {comparison}")
    return amount


def validate_currency(currency: str) -> str:
    if not currency or not _CURRENCY_RE.fullmatch(currency):
        raise InvariantViolation(
            f"Invalid currency code: '{currency}'. Use 3 uppercase letters (e.g. USD, EUR, PHP)"
        )
    return currency


def parse_calendar_date(value, *, field: str = "date") -> date:
    """Accept a date, or an ISO ``YYYY-MM-DD`` string (a timestamp is cut to its date)."""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise InvariantViolation(f"{field} must be an ISO date (YYYY-MM-DD)")
