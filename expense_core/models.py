"""Data models for the expense tracker domain."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "Category",
    "Expense",
    "ExpenseSummary",
    "format_amount",
    "isoformat_utc",
    "parse_datetime",
]


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat()
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Treat naive datetimes as UTC to avoid accidental timezone drift.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


class Category(str, Enum):
    """Closed set of expense categories used for reporting."""

    FOOD = "food"
    TRANSPORTATION = "transportation"
    HOUSING = "housing"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    HEALTHCARE = "healthcare"
    TRAVEL = "travel"
    EDUCATION = "education"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS: Dict[Category, str] = {
    Category.FOOD: "Food & Dining",
    Category.TRANSPORTATION: "Transportation",
    Category.HOUSING: "Housing & Utilities",
    Category.ENTERTAINMENT: "Entertainment",
    Category.SHOPPING: "Shopping",
    Category.HEALTHCARE: "Healthcare",
    Category.TRAVEL: "Travel",
    Category.EDUCATION: "Education",
    Category.OTHER: "Other",
}


@dataclass(frozen=True)
class Expense:
    id: int
    description: str
    amount: Decimal
    category: Category
    date: datetime
    created_at: datetime
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        return {
            "id": self.id,
            "description": self.description,
            "amount": format_amount(self.amount),
            "category": self.category.value,
            "date": isoformat_utc(self.date),
            "notes": self.notes,
            "createdAt": isoformat_utc(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        """Hydrate an Expense from JSON-native data."""
        return cls(
            id=int(data["id"]),
            description=data["description"],
            amount=Decimal(str(data["amount"])),
            category=Category(data["category"]),
            date=parse_datetime(data["date"]),
            created_at=parse_datetime(data["createdAt"]),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class ExpenseSummary:
    """Aggregate figures shown on the dashboard; derived, never persisted."""

    total_expenses: Decimal
    monthly_expenses: Decimal
    top_category: str
    last_entry: str
    percent_change: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalExpenses": float(self.total_expenses),
            "monthlyExpenses": float(self.monthly_expenses),
            "topCategory": self.top_category,
            "lastEntry": self.last_entry,
            "percentChange": float(self.percent_change),
        }
