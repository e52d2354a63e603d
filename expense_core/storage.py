"""Persistence backends for expense records.

All stores share the :class:`ExpenseStore` contract; which one a process uses is decided
once at start-up through :func:`create_store`.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import Column, DateTime, Enum, Integer, Numeric, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .exceptions import PersistenceError
from .filters import ExpenseFilter
from .models import Category, Expense
from .validators import MAX_EXPENSE_ID

__all__ = [
    "BACKENDS",
    "ExpenseStore",
    "InMemoryExpenseStore",
    "JSONExpenseStore",
    "JSONStorage",
    "SQLExpenseStore",
    "create_store",
]

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "json", "sql")

_FIELDS = ("description", "amount", "category", "date", "notes")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseStore(ABC):
    """Owns the canonical collection of expenses; the only writer of records."""

    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> Expense:
        """Insert a validated record, assigning a fresh id and creation time."""

    @abstractmethod
    def get(self, expense_id: int) -> Optional[Expense]:
        """Return the record or ``None`` when no such id exists."""

    @abstractmethod
    def update(self, expense_id: int, fields: Mapping[str, Any]) -> Optional[Expense]:
        """Replace every editable field at once; ``None`` when the id is absent."""

    @abstractmethod
    def delete(self, expense_id: int) -> bool:
        """Remove the record and report whether anything was removed."""

    @abstractmethod
    def list(self) -> List[Expense]:
        """All records, most recent ``date`` first, ties in insertion order."""

    def filter(self, expense_filter: ExpenseFilter) -> List[Expense]:
        return [expense for expense in self.list() if expense_filter.matches(expense)]

    def close(self) -> None:
        """Release backend resources."""


class InMemoryExpenseStore(ExpenseStore):
    """Dict-backed store keyed by id with a monotonic id counter."""

    def __init__(self) -> None:
        self._expenses: Dict[int, Expense] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def create(self, fields: Mapping[str, Any]) -> Expense:
        with self._lock:
            expense = Expense(
                id=self._next_id,
                created_at=_utcnow(),
                **{name: fields.get(name) for name in _FIELDS},
            )
            expenses = dict(self._expenses)
            expenses[expense.id] = expense
            self._commit(expenses, self._next_id + 1)
        return expense

    def get(self, expense_id: int) -> Optional[Expense]:
        return self._expenses.get(expense_id)

    def update(self, expense_id: int, fields: Mapping[str, Any]) -> Optional[Expense]:
        with self._lock:
            existing = self._expenses.get(expense_id)
            if existing is None:
                return None
            updated = Expense(
                id=existing.id,
                created_at=existing.created_at,
                **{name: fields.get(name) for name in _FIELDS},
            )
            expenses = dict(self._expenses)
            expenses[expense_id] = updated
            self._commit(expenses, self._next_id)
        return updated

    def delete(self, expense_id: int) -> bool:
        with self._lock:
            if expense_id not in self._expenses:
                return False
            expenses = dict(self._expenses)
            del expenses[expense_id]
            self._commit(expenses, self._next_id)
        return True

    def list(self) -> List[Expense]:
        with self._lock:
            snapshot = list(self._expenses.values())
        # dicts keep insertion order and the sort is stable, so ties stay in insertion order.
        return sorted(snapshot, key=lambda exp: exp.date, reverse=True)

    def _commit(self, expenses: Dict[int, Expense], next_id: int) -> None:
        # The visible state only changes once the new state has been persisted.
        self._persist(expenses, next_id)
        self._expenses = expenses
        self._next_id = next_id

    def _persist(self, expenses: Dict[int, Expense], next_id: int) -> None:
        """Hook for subclasses that mirror the collection to durable storage."""


class JSONStorage:
    """Simple file-based JSON document storage with crash-safe writes."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._base_path.mkdir(parents=True, exist_ok=True)

    def load(self, resource: str) -> Optional[Dict[str, Any]]:
        path = self._base_path / resource
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, dict):
            raise PersistenceError(f"Expected object payload in {path}")
        return payload

    def save(self, resource: str, document: Dict[str, Any]) -> None:
        path = self._base_path / resource
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
                handle.flush()
            # Use replace for atomic move on POSIX; ensures crash-safe persistence.
            temp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc


class JSONExpenseStore(InMemoryExpenseStore):
    """In-memory store mirrored to a JSON document after every mutation."""

    def __init__(self, storage: JSONStorage, resource: str = "expenses.json") -> None:
        super().__init__()
        self._storage = storage
        self._resource = resource
        self.load()  # Hydrate in-memory cache from persistence on construction.

    def load(self) -> None:
        document = self._storage.load(self._resource)
        if document is None:
            return
        try:
            records = [Expense.from_dict(payload) for payload in document.get("expenses", [])]
            next_id = int(document.get("next_id", 1))
        except (AttributeError, KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise PersistenceError(f"Malformed expense record in {self._resource}") from exc
        with self._lock:
            self._expenses = {expense.id: expense for expense in records}
            # Ids are never reused, even when the highest one was deleted.
            self._next_id = max([next_id, *(expense.id + 1 for expense in records)])
        logger.debug("Loaded %d expenses from %s", len(records), self._resource)

    def _persist(self, expenses: Dict[int, Expense], next_id: int) -> None:
        document = {
            "next_id": next_id,
            "expenses": [expense.to_dict() for expense in expenses.values()],
        }
        self._storage.save(self._resource, document)


Base = declarative_base()


class ExpenseRow(Base):
    __tablename__ = "expenses"
    # AUTOINCREMENT stops SQLite from handing out a deleted id again.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    category = Column(
        Enum(
            Category,
            name="category",
            values_callable=lambda enum: [member.value for member in enum],
            validate_strings=True,
            create_constraint=True,
        ),
        nullable=False,
    )
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _addressable(expense_id: int) -> bool:
    # The DBAPI cannot bind integers outside the signed 64-bit range.
    return 0 < expense_id <= MAX_EXPENSE_ID


def _row_to_expense(row: ExpenseRow) -> Expense:
    return Expense(
        id=row.id,
        description=row.description,
        amount=row.amount,
        category=row.category,
        date=_as_utc(row.date),
        created_at=_as_utc(row.created_at),
        notes=row.notes,
    )


class SQLExpenseStore(ExpenseStore):
    """Relational store backed by SQLAlchemy; one session per operation."""

    def __init__(self, url: str, **engine_options: Any) -> None:
        try:
            self._engine = create_engine(url, **engine_options)
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            logger.error("Unable to initialise database %s: %s", url, exc)
            raise PersistenceError(f"Unable to initialise database: {exc}") from exc
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database operation failed: %s", exc)
            raise PersistenceError(f"Database operation failed: {exc}") from exc
        finally:
            session.close()

    def create(self, fields: Mapping[str, Any]) -> Expense:
        with self._session() as session:
            row = ExpenseRow(created_at=_utcnow(), **{name: fields.get(name) for name in _FIELDS})
            session.add(row)
            session.flush()
            expense = _row_to_expense(row)
        return expense

    def get(self, expense_id: int) -> Optional[Expense]:
        if not _addressable(expense_id):
            return None
        with self._session() as session:
            row = session.get(ExpenseRow, expense_id)
            expense = _row_to_expense(row) if row is not None else None
        return expense

    def update(self, expense_id: int, fields: Mapping[str, Any]) -> Optional[Expense]:
        if not _addressable(expense_id):
            return None
        with self._session() as session:
            row = session.get(ExpenseRow, expense_id)
            if row is None:
                return None
            for name in _FIELDS:
                setattr(row, name, fields.get(name))
            session.flush()
            expense = _row_to_expense(row)
        return expense

    def delete(self, expense_id: int) -> bool:
        if not _addressable(expense_id):
            return False
        with self._session() as session:
            row = session.get(ExpenseRow, expense_id)
            if row is None:
                return False
            session.delete(row)
        return True

    def list(self) -> List[Expense]:
        return self._query()

    def filter(self, expense_filter: ExpenseFilter) -> List[Expense]:
        return self._query(expense_filter)

    def _query(self, expense_filter: Optional[ExpenseFilter] = None) -> List[Expense]:
        statement = select(ExpenseRow)
        if expense_filter is not None:
            if expense_filter.date_from is not None:
                statement = statement.where(ExpenseRow.date >= _as_utc(expense_filter.date_from))
            if expense_filter.date_to is not None:
                statement = statement.where(ExpenseRow.date <= _as_utc(expense_filter.date_to))
            if expense_filter.category is not None:
                statement = statement.where(ExpenseRow.category == expense_filter.category)
        statement = statement.order_by(ExpenseRow.date.desc(), ExpenseRow.id.asc())
        with self._session() as session:
            expenses = [_row_to_expense(row) for row in session.scalars(statement)]
        return expenses

    def close(self) -> None:
        self._engine.dispose()


def create_store(
    backend: str,
    *,
    data_dir: Optional[Path] = None,
    database_url: Optional[str] = None,
) -> ExpenseStore:
    """Build the store named by ``backend`` (``memory``, ``json`` or ``sql``)."""
    backend = backend.strip().lower()
    if backend == "memory":
        store: ExpenseStore = InMemoryExpenseStore()
    elif backend == "json":
        store = JSONExpenseStore(JSONStorage(Path(data_dir or "data")))
    elif backend == "sql":
        if database_url is None:
            base = Path(data_dir or "data")
            base.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite:///{base / 'expenses.db'}"
        store = SQLExpenseStore(database_url)
    else:
        raise ValueError(f"Unknown storage backend '{backend}'; expected one of {', '.join(BACKENDS)}")
    logger.info("Using %s expense store", backend)
    return store
