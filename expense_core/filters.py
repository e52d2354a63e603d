"""Filter predicate narrowing expenses by date range and category."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Mapping, Optional, Tuple

from .exceptions import ValidationError
from .models import Category, Expense
from .validators import validate_category, validate_datetime

__all__ = ["ALL_CATEGORIES", "TIME_RANGES", "ExpenseFilter", "resolve_time_range"]

ALL_CATEGORIES = "all"
TIME_RANGES = ("week", "month", "quarter", "year", "all")

DateRange = Tuple[Optional[datetime], Optional[datetime]]


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def _end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _is_date_only(raw: str) -> bool:
    try:
        date.fromisoformat(raw.strip())
    except ValueError:
        return False
    return True


def _month_start(year: int, month: int, tz) -> datetime:
    return datetime(year, month, 1, tzinfo=tz)


def _next_month_start(year: int, month: int, tz) -> datetime:
    if month == 12:
        return datetime(year + 1, 1, 1, tzinfo=tz)
    return datetime(year, month + 1, 1, tzinfo=tz)


def resolve_time_range(name: str, now: datetime) -> DateRange:
    """Resolve a named time range into inclusive bounds of the period containing ``now``."""
    key = name.strip().lower()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    tz = now.tzinfo
    tick = timedelta(microseconds=1)

    if key == "all":
        return None, None
    if key == "week":
        # Weeks run Sunday through Saturday.
        start = _start_of_day(now) - timedelta(days=(now.weekday() + 1) % 7)
        return start, start + timedelta(days=7) - tick
    if key == "month":
        start = _month_start(now.year, now.month, tz)
        return start, _next_month_start(now.year, now.month, tz) - tick
    if key == "quarter":
        first_month = 3 * ((now.month - 1) // 3) + 1
        start = _month_start(now.year, first_month, tz)
        return start, _next_month_start(now.year, first_month + 2, tz) - tick
    if key == "year":
        start = datetime(now.year, 1, 1, tzinfo=tz)
        return start, datetime(now.year + 1, 1, 1, tzinfo=tz) - tick
    raise ValidationError(
        f"timeRange must be one of: {', '.join(TIME_RANGES)}",
        {"timeRange": f"unknown time range '{name}'"},
    )


@dataclass(frozen=True)
class ExpenseFilter:
    """AND-combination of optional date bounds and a category constraint."""

    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    category: Optional[Category] = None

    def __post_init__(self) -> None:
        # Bounds are compared against UTC timestamps; naive bounds are read as UTC.
        for name in ("date_from", "date_to"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _as_utc(value))

    def matches(self, expense: Expense) -> bool:
        if self.date_from is not None and expense.date < self.date_from:
            return False
        if self.date_to is not None and expense.date > self.date_to:
            return False
        if self.category is not None and expense.category is not self.category:
            return False
        return True

    @property
    def is_empty(self) -> bool:
        return self.date_from is None and self.date_to is None and self.category is None

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]], now: datetime) -> "ExpenseFilter":
        """Build a filter from ``dateFrom``/``dateTo``/``category``/``timeRange`` parameters.

        A ``timeRange`` shorthand takes precedence over explicit dates. A
        date-only ``dateTo`` covers the whole of that day.
        """
        errors = {}
        date_from: Optional[datetime] = None
        date_to: Optional[datetime] = None
        category: Optional[Category] = None

        time_range = params.get("timeRange")
        if time_range:
            date_from, date_to = resolve_time_range(time_range, now)
        else:
            raw_from = params.get("dateFrom")
            raw_to = params.get("dateTo")
            if raw_from:
                try:
                    date_from = validate_datetime(raw_from, "dateFrom")
                except ValidationError as exc:
                    errors["dateFrom"] = str(exc)
            if raw_to:
                try:
                    date_to = validate_datetime(raw_to, "dateTo")
                except ValidationError as exc:
                    errors["dateTo"] = str(exc)
                else:
                    if _is_date_only(raw_to):
                        date_to = _end_of_day(date_to)

        raw_category = params.get("category")
        if raw_category and raw_category.strip().lower() != ALL_CATEGORIES:
            try:
                category = validate_category(raw_category, "category")
            except ValidationError as exc:
                errors["category"] = str(exc)

        if errors:
            raise ValidationError("Invalid filter parameters", errors)
        return cls(date_from=date_from, date_to=date_to, category=category)
