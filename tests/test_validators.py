from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from expense_core.exceptions import ValidationError
from expense_core.models import Category
from expense_core.validators import (
    parse_amount,
    parse_expense_id,
    validate_category,
    validate_datetime,
    validate_expense,
    validate_optional_str,
)


def test_parse_amount_quantizes_to_cents():
    assert parse_amount("12.345", "amount") == Decimal("12.35")
    assert parse_amount(7, "amount") == Decimal("7.00")


@pytest.mark.parametrize("raw", [0, "-1", "0.001", "abc", None, True, "NaN", "Infinity"])
def test_parse_amount_rejects_non_positive_and_garbage(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw, "amount")


def test_parse_amount_rejects_values_beyond_column_precision():
    with pytest.raises(ValidationError):
        parse_amount("100000000", "amount")


def test_parse_amount_checks_limit_after_rounding():
    assert parse_amount("99999999.99", "amount") == Decimal("99999999.99")
    with pytest.raises(ValidationError):
        parse_amount("99999999.995", "amount")


@pytest.mark.parametrize("raw", ["abc", "1.5", "0", "-3", str(2**63), "99999999999999999999"])
def test_parse_expense_id_rejects_unaddressable_ids(raw):
    with pytest.raises(ValidationError) as excinfo:
        parse_expense_id(raw)
    assert "id" in excinfo.value.errors


def test_parse_expense_id_accepts_positive_integers():
    assert parse_expense_id(" 42 ") == 42
    assert parse_expense_id(str(2**63 - 1)) == 2**63 - 1


def test_validate_category_is_case_insensitive():
    assert validate_category(" Food ") is Category.FOOD


def test_validate_category_rejects_unknown_value():
    with pytest.raises(ValidationError) as excinfo:
        validate_category("groceries")
    assert "must be one of" in str(excinfo.value)


def test_validate_datetime_accepts_dates_and_z_suffix():
    assert validate_datetime("2024-02-20", "date") == datetime(2024, 2, 20, tzinfo=timezone.utc)
    assert validate_datetime("2024-02-20T10:30:00Z", "date") == datetime(
        2024, 2, 20, 10, 30, tzinfo=timezone.utc
    )
    assert validate_datetime(date(2024, 2, 20), "date").tzinfo == timezone.utc


def test_validate_datetime_rejects_unparseable_string():
    with pytest.raises(ValidationError):
        validate_datetime("20/02/2024", "date")


def test_blank_notes_normalize_to_none():
    assert validate_optional_str("   ", "notes", 10) is None
    assert validate_optional_str(" hi ", "notes", 10) == "hi"


def test_validate_expense_collects_field_errors():
    with pytest.raises(ValidationError) as excinfo:
        validate_expense({"description": "", "amount": -5, "category": "nope"})
    assert set(excinfo.value.errors) == {"description", "amount", "category", "date"}


def test_validate_expense_returns_normalized_fields():
    cleaned = validate_expense(
        {"description": " Taxi ", "amount": "18.5", "category": "transportation", "date": "2024-03-01"}
    )
    assert cleaned == {
        "description": "Taxi",
        "amount": Decimal("18.50"),
        "category": Category.TRANSPORTATION,
        "date": datetime(2024, 3, 1, tzinfo=timezone.utc),
        "notes": None,
    }
