"""Flask REST API exposing the expense tracker services."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from expense_core.config import Settings
from expense_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from expense_core.export import CSV_FILENAME
from expense_core.filters import ExpenseFilter
from expense_core.services import ExpenseService
from expense_core.storage import ExpenseStore, create_store
from expense_core.validators import parse_expense_id

API_PREFIX = "/api"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _configure_cors(app: Flask, settings: Settings) -> None:
    if settings.is_dev:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif settings.allowed_origins:
        CORS(app, resources={r"/*": {"origins": settings.allowed_origins}}, supports_credentials=True)
    else:
        CORS(app)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[ExpenseStore] = None,
    clock: Callable[[], datetime] = _utcnow,
) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    # Month reports rely on insertion order (Jan..Dec).
    app.json.sort_keys = False
    _configure_cors(app, settings)

    if store is None:
        store = create_store(
            settings.storage,
            data_dir=settings.data_dir,
            database_url=settings.database_url,
        )
    expense_service = ExpenseService(store)
    if settings.seed:
        expense_service.seed_samples(clock())
    app.extensions["expense_service"] = expense_service

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        if status >= 500:
            app.logger.error("%s: %s", message, exc)
        else:
            app.logger.warning("%s: %s", message, exc)
        body: Dict[str, Any] = {"error": message, "details": str(exc)}
        if isinstance(exc, ValidationError) and exc.errors:
            body["errors"] = exc.errors
        return jsonify(body), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _filter_from_query() -> ExpenseFilter:
        params = {
            "dateFrom": request.args.get("dateFrom"),
            "dateTo": request.args.get("dateTo"),
            "category": request.args.get("category"),
            "timeRange": request.args.get("timeRange"),
        }
        return ExpenseFilter.from_params(params, clock())

    @app.get(f"{API_PREFIX}/expenses")
    def list_expenses():
        expenses = expense_service.list(_filter_from_query())
        return _success([expense.to_dict() for expense in expenses])

    @app.get(f"{API_PREFIX}/expenses/filter")
    def filter_expenses():
        return list_expenses()

    @app.get(f"{API_PREFIX}/expenses/export")
    def export_expenses():
        csv_body = expense_service.export_csv(_filter_from_query())
        return Response(
            csv_body,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={CSV_FILENAME}"},
        )

    @app.post(f"{API_PREFIX}/expenses")
    def create_expense():
        payload = _json_body()
        expense = expense_service.add(payload)
        return _success(expense.to_dict(), 201)

    @app.get(f"{API_PREFIX}/expenses/<expense_id>")
    def get_expense(expense_id: str):
        expense = expense_service.get(parse_expense_id(expense_id))
        return _success(expense.to_dict())

    @app.put(f"{API_PREFIX}/expenses/<expense_id>")
    def update_expense(expense_id: str):
        target = parse_expense_id(expense_id)
        payload = _json_body()
        expense = expense_service.update(target, payload)
        return _success(expense.to_dict())

    @app.delete(f"{API_PREFIX}/expenses/<expense_id>")
    def delete_expense(expense_id: str):
        expense_service.delete(parse_expense_id(expense_id))
        return _success({}, 204)

    @app.get(f"{API_PREFIX}/summary")
    def summary():
        return _success(expense_service.summary(clock()).to_dict())

    @app.get(f"{API_PREFIX}/reports/by-category")
    def report_by_category():
        totals = expense_service.by_category()
        return _success({category.value: float(total) for category, total in totals.items()})

    @app.get(f"{API_PREFIX}/reports/by-month")
    def report_by_month():
        year = request.args.get("year", type=int) or clock().year
        totals = expense_service.by_month(year)
        return _success({month: float(total) for month, total in totals.items()})

    return app
