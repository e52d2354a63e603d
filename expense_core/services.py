"""Framework-agnostic business services for the expense tracker."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from .aggregation import previous_month, summarize, totals_by_category, totals_by_month
from .exceptions import RecordNotFoundError
from .export import render_csv
from .filters import ExpenseFilter
from .models import Category, Expense, ExpenseSummary
from .storage import ExpenseStore
from .validators import validate_expense

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseService:
    """Mediates between callers and the injected expense store."""

    def __init__(self, store: ExpenseStore) -> None:
        self._store = store

    # Public API -----------------------------------------------------------
    def add(self, payload: Mapping[str, object]) -> Expense:
        fields = validate_expense(payload)
        expense = self._store.create(fields)
        logger.info("Created expense %s (%s)", expense.id, expense.category.value)
        return expense

    def update(self, expense_id: int, payload: Mapping[str, object]) -> Expense:
        """Replace every editable field of an expense with the supplied values."""
        fields = validate_expense(payload)
        updated = self._store.update(expense_id, fields)
        if updated is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        logger.info("Updated expense %s", expense_id)
        return updated

    def delete(self, expense_id: int) -> None:
        if not self._store.delete(expense_id):
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        logger.info("Deleted expense %s", expense_id)

    def get(self, expense_id: int) -> Expense:
        """Return an expense or raise if it does not exist."""
        expense = self._store.get(expense_id)
        if expense is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return expense

    def list(self, expense_filter: Optional[ExpenseFilter] = None) -> List[Expense]:
        if expense_filter is None or expense_filter.is_empty:
            return self._store.list()
        return self._store.filter(expense_filter)

    def summary(self, now: Optional[datetime] = None) -> ExpenseSummary:
        return summarize(self._store.list(), (now or _utcnow()).astimezone(timezone.utc))

    def by_category(self) -> Dict[Category, Decimal]:
        return totals_by_category(self._store.list())

    def by_month(self, year: int) -> Dict[str, Decimal]:
        return totals_by_month(self._store.list(), year)

    def export_csv(self, expense_filter: Optional[ExpenseFilter] = None) -> str:
        return render_csv(self.list(expense_filter))

    def seed_samples(self, now: Optional[datetime] = None) -> List[Expense]:
        """Populate an empty store with sample data for local development."""
        if self._store.list():
            return []
        today = (now or _utcnow()).astimezone(timezone.utc)
        last_month = _shift_month_back(today)
        samples = [
            ("Grocery Shopping", "67.52", Category.FOOD, today, "Weekly groceries from Trader Joe's"),
            ("Netflix Subscription", "14.99", Category.ENTERTAINMENT, today - timedelta(days=2), "Monthly subscription"),
            ("Gas Station", "42.75", Category.TRANSPORTATION, today - timedelta(days=3), "Filled up the tank"),
            ("Electricity Bill", "124.30", Category.HOUSING, today - timedelta(days=7), "Monthly utility bill"),
            ("New Shoes", "89.99", Category.SHOPPING, today - timedelta(days=10), "Running shoes from Nike"),
            ("Dentist Appointment", "75.00", Category.HEALTHCARE, last_month, "Regular checkup"),
            ("Restaurant", "48.35", Category.FOOD, last_month, "Dinner with friends"),
            ("Internet Bill", "65.99", Category.HOUSING, last_month, "Monthly internet service"),
        ]
        created = [
            self.add(
                {
                    "description": description,
                    "amount": amount,
                    "category": category.value,
                    "date": date,
                    "notes": notes,
                }
            )
            for description, amount, category, date, notes in samples
        ]
        logger.info("Seeded %d sample expenses", len(created))
        return created


def _shift_month_back(moment: datetime) -> datetime:
    """Same day one month earlier, clamped to the end of shorter months."""
    year, month = previous_month(moment.year, moment.month)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
