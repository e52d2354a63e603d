"""Core business logic package for the expense tracker."""

from .aggregation import summarize, totals_by_category, totals_by_month
from .config import Settings
from .exceptions import PersistenceError, RecordNotFoundError, ValidationError
from .filters import ExpenseFilter, resolve_time_range
from .models import Category, Expense, ExpenseSummary
from .services import ExpenseService
from .storage import (
    ExpenseStore,
    InMemoryExpenseStore,
    JSONExpenseStore,
    JSONStorage,
    SQLExpenseStore,
    create_store,
)

__all__ = [
    "Category",
    "Expense",
    "ExpenseSummary",
    "ExpenseFilter",
    "ExpenseService",
    "ExpenseStore",
    "InMemoryExpenseStore",
    "JSONExpenseStore",
    "JSONStorage",
    "SQLExpenseStore",
    "Settings",
    "create_store",
    "resolve_time_range",
    "summarize",
    "totals_by_category",
    "totals_by_month",
    "PersistenceError",
    "ValidationError",
    "RecordNotFoundError",
]
