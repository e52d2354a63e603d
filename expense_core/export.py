"""CSV rendering of expense records."""

from __future__ import annotations

import csv
import io
from decimal import Decimal
from typing import Iterable, List, Union

from .models import Expense

CSV_HEADER = "Date,Description,Amount,Category,Notes"
CSV_FILENAME = "expenses.csv"

_CENTS = Decimal("0.01")


def render_row(expense: Expense) -> List[Union[str, Decimal]]:
    return [
        expense.date.strftime("%Y-%m-%d"),
        expense.description,
        expense.amount.quantize(_CENTS),
        expense.category.value,
        expense.notes or "",
    ]


def render_csv(expenses: Iterable[Expense]) -> str:
    """Render records as CSV with every non-numeric column quoted, one line per record."""
    buffer = io.StringIO()
    buffer.write(CSV_HEADER + "\n")
    # QUOTE_NONNUMERIC leaves the Decimal amount bare and quotes the rest.
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerows(render_row(expense) for expense in expenses)
    return buffer.getvalue()
