"""Shared test fixtures for the expense tracker tests."""

import sys
from pathlib import Path

import pytest

# Make the top-level packages importable without installing the project.
sys.path.insert(0, str(Path(__file__).parent.parent))

from expense_core.services import ExpenseService  # noqa: E402
from expense_core.storage import InMemoryExpenseStore  # noqa: E402


@pytest.fixture
def service():
    return ExpenseService(InMemoryExpenseStore())


@pytest.fixture
def sample_payloads():
    return [
        {"description": "Groceries", "amount": 100, "category": "food", "date": "2024-01-15"},
        {"description": "Lunch", "amount": 50, "category": "food", "date": "2024-02-10"},
        {"description": "Train ticket", "amount": 30, "category": "travel", "date": "2024-02-20"},
    ]
