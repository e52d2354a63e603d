import csv
import io
from datetime import datetime, timezone
from decimal import Decimal

from expense_core.export import CSV_HEADER, render_csv
from expense_core.models import Category, Expense


def make_expense(expense_id, description, notes):
    return Expense(
        id=expense_id,
        description=description,
        amount=Decimal("12.50"),
        category=Category.SHOPPING,
        date=datetime(2024, 2, 20, 15, 30, tzinfo=timezone.utc),
        created_at=datetime(2024, 2, 20, tzinfo=timezone.utc),
        notes=notes,
    )


def test_rows_quote_everything_but_the_amount():
    body = render_csv([make_expense(1, "Shoes", None)])
    lines = body.splitlines()
    assert lines[0] == CSV_HEADER
    assert lines[1] == '"2024-02-20","Shoes",12.50,"shopping",""'


def test_multiline_notes_stay_in_one_record():
    body = render_csv([make_expense(1, 'Say "hi"', "first line\nsecond line")])
    assert '"Say ""hi"""' in body
    rows = list(csv.reader(io.StringIO(body)))
    assert len(rows) == 2
    assert rows[1][4] == "first line\nsecond line"


def test_export_parses_back_to_source_tuples():
    expenses = [
        make_expense(1, 'The "good" umbrella', "rainy, windy day"),
        make_expense(2, "Socks", None),
    ]
    rows = list(csv.DictReader(io.StringIO(render_csv(expenses))))
    parsed = [
        (row["Date"], row["Description"], Decimal(row["Amount"]), row["Category"], row["Notes"] or None)
        for row in rows
    ]
    expected = [
        (
            expense.date.strftime("%Y-%m-%d"),
            expense.description,
            expense.amount,
            expense.category.value,
            expense.notes,
        )
        for expense in expenses
    ]
    assert parsed == expected


def test_empty_export_is_header_only():
    assert render_csv([]) == CSV_HEADER + "\n"
