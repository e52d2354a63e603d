"""Pure aggregation folds turning expense records into report figures.

Every function here takes a snapshot of records and returns a fresh value; nothing is
cached and no record is mutated. A record whose amount cannot be read as a finite positive
decimal aborts the whole computation with :class:`PersistenceError`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Iterable, List, Sequence, Tuple

from .exceptions import PersistenceError
from .models import Category, Expense, ExpenseSummary

__all__ = [
    "MONTH_ABBREVIATIONS",
    "NO_EXPENSES_LABEL",
    "previous_month",
    "summarize",
    "totals_by_category",
    "totals_by_month",
]

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
NO_EXPENSES_LABEL = "No expenses yet"

ZERO = Decimal("0.00")


def _amount_of(expense: Expense) -> Decimal:
    try:
        amount = Decimal(str(expense.amount))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise PersistenceError(f"Expense {expense.id} has an unreadable amount") from exc
    if not amount.is_finite() or amount <= 0:
        raise PersistenceError(f"Expense {expense.id} has an invalid amount: {expense.amount!r}")
    return amount


def _sum(expenses: Iterable[Expense]) -> Decimal:
    return sum((_amount_of(expense) for expense in expenses), start=ZERO)


def _round(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _in_month(expense: Expense, year: int, month: int) -> bool:
    return expense.date.year == year and expense.date.month == month


def _most_recent_first(expenses: Iterable[Expense]) -> List[Expense]:
    # sort is stable with reverse=True, so equal dates keep their incoming order.
    return sorted(expenses, key=lambda exp: exp.date, reverse=True)


def percent_change(current: Decimal, previous: Decimal) -> Decimal:
    """Month-over-month change in percent; 0 when there is nothing to compare against."""
    if previous == 0:
        return ZERO
    return _round((current - previous) / previous * 100)


def totals_by_category(expenses: Iterable[Expense]) -> Dict[Category, Decimal]:
    """Sum amounts per category, in first-encountered order; absent categories are omitted."""
    totals: Dict[Category, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, ZERO) + _amount_of(expense)
    return totals


def totals_by_month(expenses: Iterable[Expense], year: int) -> Dict[str, Decimal]:
    """Sum the given year's amounts per month; all twelve months are always present."""
    totals: Dict[str, Decimal] = {name: ZERO for name in MONTH_ABBREVIATIONS}
    for expense in expenses:
        amount = _amount_of(expense)
        if expense.date.year == year:
            name = MONTH_ABBREVIATIONS[expense.date.month - 1]
            totals[name] += amount
    return totals


def summarize(expenses: Sequence[Expense], now: datetime) -> ExpenseSummary:
    ordered = _most_recent_first(expenses)
    prev_year, prev_month = previous_month(now.year, now.month)

    total = _sum(ordered)
    monthly = _sum(exp for exp in ordered if _in_month(exp, now.year, now.month))
    previous = _sum(exp for exp in ordered if _in_month(exp, prev_year, prev_month))

    top_category = Category.OTHER
    top_amount = ZERO
    for category, amount in totals_by_category(ordered).items():
        # Strictly greater keeps the first-encountered category on ties.
        if amount > top_amount:
            top_category, top_amount = category, amount

    return ExpenseSummary(
        total_expenses=total,
        monthly_expenses=monthly,
        top_category=top_category.label,
        last_entry=ordered[0].description if ordered else NO_EXPENSES_LABEL,
        percent_change=percent_change(monthly, previous),
    )
