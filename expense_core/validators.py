"""Validation helpers shared across expense tracker services."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Dict, Mapping, Optional, TypeVar

from .exceptions import ValidationError
from .models import Category, parse_datetime

T = TypeVar("T")

DESCRIPTION_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 1000
# numeric(10, 2) leaves eight integer digits.
AMOUNT_LIMIT = Decimal("100000000")
# Largest value a signed 64-bit integer primary key can hold.
MAX_EXPENSE_ID = 2**63 - 1


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    if raw is None or isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{field} must be a numeric value") from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a numeric value")
    amount = _quantize_two_decimals(amount)
    # Both bounds are checked after rounding: 0.001 becomes 0.00, 99999999.995 becomes 1e8.
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    if amount >= AMOUNT_LIMIT:
        raise ValidationError(f"{field} must be less than {AMOUNT_LIMIT}")
    return amount


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_required_str(value, field, max_length)


def validate_datetime(value: object, field: str) -> datetime:
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = parse_datetime(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 date or datetime") from exc
    else:
        raise ValidationError(f"{field} must be a datetime or ISO 8601 string")
    return dt.astimezone(timezone.utc)


def validate_category(value: object, field: str = "category") -> Category:
    if isinstance(value, Category):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    try:
        return Category(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(category.value for category in Category)
        raise ValidationError(f"{field} must be one of: {allowed}") from exc


def validate_expense(payload: Mapping[str, object]) -> Dict[str, object]:
    """Validate a full expense payload, collecting an error per invalid field."""
    if not isinstance(payload, Mapping):
        raise ValidationError("Expense payload must be an object")

    errors: Dict[str, str] = {}
    cleaned: Dict[str, object] = {}

    def check(field: str, validator: Callable[[object], T]) -> None:
        try:
            cleaned[field] = validator(payload.get(field))
        except ValidationError as exc:
            errors[field] = str(exc)

    check("description", lambda v: validate_required_str(v, "description", DESCRIPTION_MAX_LENGTH))
    check("amount", lambda v: parse_amount(v, "amount"))
    check("category", lambda v: validate_category(v, "category"))
    check("date", lambda v: validate_datetime(v, "date"))
    check("notes", lambda v: validate_optional_str(v, "notes", NOTES_MAX_LENGTH))

    if errors:
        raise ValidationError("Invalid expense data", errors)
    return cleaned


def parse_expense_id(raw: object) -> int:
    """Turn a path or argument token into an expense id the stores can address."""
    try:
        expense_id = int(str(raw).strip())
    except ValueError as exc:
        raise ValidationError("Invalid expense ID", {"id": f"'{raw}' is not an integer"}) from exc
    if not 1 <= expense_id <= MAX_EXPENSE_ID:
        raise ValidationError("Invalid expense ID", {"id": f"'{raw}' is out of range"})
    return expense_id
