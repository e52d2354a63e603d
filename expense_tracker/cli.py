"""Console interface for the expense tracker."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

from expense_core.config import Settings
from expense_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from expense_core.filters import TIME_RANGES, ExpenseFilter
from expense_core.models import Category, format_amount
from expense_core.services import ExpenseService
from expense_core.storage import BACKENDS, create_store

DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S")


def _parse_date(value: str) -> str:
    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(value, fmt)
        except ValueError:
            continue
        return value
    raise argparse.ArgumentTypeError(
        f"Invalid date '{value}'. Expected YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS."
    )


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite() or amount <= 0:
        raise argparse.ArgumentTypeError("Amount must be greater than zero")
    return value


def _load_service(settings: Settings) -> ExpenseService:
    store = create_store(
        settings.storage,
        data_dir=settings.data_dir,
        database_url=settings.database_url,
    )
    service = ExpenseService(store)
    if settings.seed:
        service.seed_samples()
    return service


def _format_expense(expense: Dict[str, Any]) -> str:
    label = Category(expense["category"]).label
    return (
        f"[{expense['id']}] {expense['date'][:10]} {expense['amount']}  {expense['description']}\n"
        f"  Category: {label}\n"
        f"  Notes: {expense.get('notes') or '-'}\n"
    )


def _filter_from_args(args: argparse.Namespace) -> ExpenseFilter:
    params = {
        "dateFrom": args.date_from,
        "dateTo": args.date_to,
        "category": args.category,
        "timeRange": args.time_range,
    }
    return ExpenseFilter.from_params(params, datetime.now(timezone.utc))


def handle_expense(args: argparse.Namespace, service: ExpenseService) -> None:
    if args.command == "add":
        payload = {
            "description": args.description,
            "amount": args.amount,
            "category": args.category,
            "date": args.date,
            "notes": args.notes,
        }
        expense = service.add(payload)
        print("Expense added:\n" + _format_expense(expense.to_dict()))
    elif args.command == "list":
        expenses = service.list(_filter_from_args(args))
        if not expenses:
            print("No expenses found.")
            return
        total = sum((expense.amount for expense in expenses), start=Decimal("0.00"))
        print(f"Found {len(expenses)} expenses (total {total:.2f}):")
        for expense in expenses:
            print(_format_expense(expense.to_dict()))
    elif args.command == "show":
        print(_format_expense(service.get(args.id).to_dict()))
    elif args.command == "edit":
        # Updates replace every field, so start from the stored values.
        payload = service.get(args.id).to_dict()
        changes = {
            "description": args.description,
            "amount": args.amount,
            "category": args.category,
            "date": args.date,
            "notes": args.notes,
        }
        payload.update({k: v for k, v in changes.items() if v is not None})
        expense = service.update(args.id, payload)
        print("Expense updated:\n" + _format_expense(expense.to_dict()))
    elif args.command == "delete":
        service.delete(args.id)
        print(f"Expense {args.id} deleted.")


def handle_summary(args: argparse.Namespace, service: ExpenseService) -> None:
    summary = service.summary()
    print(f"Total expenses:   {format_amount(summary.total_expenses)}")
    print(f"This month:       {format_amount(summary.monthly_expenses)}")
    print(f"Change vs. last:  {summary.percent_change:+.2f}%")
    print(f"Top category:     {summary.top_category}")
    print(f"Last entry:       {summary.last_entry}")


def handle_report(args: argparse.Namespace, service: ExpenseService) -> None:
    if args.kind == "category":
        totals = service.by_category()
        if not totals:
            print("No expenses found.")
            return
        for category, total in sorted(totals.items(), key=lambda item: item[1], reverse=True):
            print(f"{category.label:<22} {format_amount(total):>12}")
    else:
        year = args.year or datetime.now(timezone.utc).year
        print(f"Expenses by month for {year}:")
        for month, total in service.by_month(year).items():
            print(f"{month}  {format_amount(total):>12}")


def handle_export(args: argparse.Namespace, service: ExpenseService) -> None:
    csv_body = service.export_csv(_filter_from_args(args))
    if args.output is None:
        sys.stdout.write(csv_body)
        return
    try:
        args.output.write_text(csv_body, encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Unable to write to {args.output}") from exc
    print(f"Exported expenses to {args.output}")


def handle_serve(args: argparse.Namespace, settings: Settings) -> None:
    from api.app import create_app

    app = create_app(settings)
    app.run(host=args.host, port=args.port, debug=settings.is_dev)


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--category", help="Category value or 'all'")
    parser.add_argument("--date-from", type=_parse_date)
    parser.add_argument("--date-to", type=_parse_date)
    parser.add_argument("--time-range", choices=TIME_RANGES)


def build_parser() -> argparse.ArgumentParser:
    categories = [category.value for category in Category]

    parser = argparse.ArgumentParser(description="Expense Tracker CLI")
    parser.add_argument(
        "--storage",
        choices=BACKENDS,
        help="Storage backend (default: $EXPENSE_TRACKER_STORAGE or json)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory for JSON/SQLite data (default: ./data)",
    )
    parser.add_argument("--database-url", help="SQLAlchemy URL for the sql backend")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    parser.add_argument(
        "--seed",
        action="store_true",
        default=None,
        help="Insert sample expenses when the store is empty",
    )

    subparsers = parser.add_subparsers(dest="entity", required=True)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("description")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("category", choices=categories)
    expense_add.add_argument("date", type=_parse_date)
    expense_add.add_argument("--notes")

    expense_list = expense_sub.add_parser("list", help="List expenses")
    _add_filter_arguments(expense_list)

    expense_show = expense_sub.add_parser("show", help="Show a single expense")
    expense_show.add_argument("id", type=int)

    expense_edit = expense_sub.add_parser("edit", help="Edit an existing expense")
    expense_edit.add_argument("id", type=int)
    expense_edit.add_argument("--description")
    expense_edit.add_argument("--amount", type=_parse_amount)
    expense_edit.add_argument("--category", choices=categories)
    expense_edit.add_argument("--date", type=_parse_date)
    expense_edit.add_argument("--notes")

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id", type=int)

    subparsers.add_parser("summary", help="Show dashboard summary figures")

    report_parser = subparsers.add_parser("report", help="Aggregate reports")
    report_parser.add_argument("kind", choices=("category", "month"))
    report_parser.add_argument("--year", type=int, help="Year for the monthly report")

    export_parser = subparsers.add_parser("export", help="Export expenses as CSV")
    export_parser.add_argument("--output", type=Path, help="Write to a file instead of stdout")
    _add_filter_arguments(export_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=5000)

    return parser


def _configure_logging(level: str) -> None:
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level '{level}'")
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env().with_overrides(
            storage=args.storage,
            data_dir=args.data_dir,
            database_url=args.database_url,
            log_level=args.log_level.upper() if args.log_level else None,
            seed=args.seed,
        )
        _configure_logging(settings.log_level)
        if args.entity == "serve":
            handle_serve(args, settings)
            return 0
        service = _load_service(settings)
        if args.entity == "expense":
            handle_expense(args, service)
        elif args.entity == "summary":
            handle_summary(args, service)
        elif args.entity == "report":
            handle_report(args, service)
        elif args.entity == "export":
            handle_export(args, service)
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown entity: {args.entity}")
            return 2
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        for field, message in exc.errors.items():
            print(f"  {field}: {message}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        # Bad settings: unknown storage backend or log level.
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
