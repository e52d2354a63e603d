import csv
import io
from datetime import datetime, timezone

import pytest

from api.app import create_app
from expense_core.config import Settings
from expense_core.storage import InMemoryExpenseStore, SQLExpenseStore

NOW = datetime(2024, 2, 28, 12, tzinfo=timezone.utc)


@pytest.fixture
def client():
    app = create_app(Settings(env="dev"), store=InMemoryExpenseStore(), clock=lambda: NOW)
    app.config.update(TESTING=True)
    return app.test_client()


@pytest.fixture
def seeded_client(client, sample_payloads):
    for payload in sample_payloads:
        assert client.post("/api/expenses", json=payload).status_code == 201
    return client


def test_create_returns_record(client):
    response = client.post(
        "/api/expenses",
        json={"description": "Cinema", "amount": 12.5, "category": "entertainment", "date": "2024-02-01"},
    )
    assert response.status_code == 201
    body = response.get_json()
    assert body["id"] == 1
    assert body["amount"] == "12.50"
    assert body["category"] == "entertainment"
    assert body["date"] == "2024-02-01T00:00:00Z"
    assert body["notes"] is None
    assert body["createdAt"].endswith("Z")


def test_create_reports_field_errors(client):
    response = client.post("/api/expenses", json={"description": "", "amount": -1, "category": "pets"})
    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "Validation error"
    assert set(body["errors"]) == {"description", "amount", "category", "date"}
    assert client.get("/api/expenses").get_json() == []


def test_create_rejects_non_json_body(client):
    response = client.post("/api/expenses", data="amount=5")
    assert response.status_code == 400


def test_get_by_id(seeded_client):
    assert seeded_client.get("/api/expenses/2").get_json()["description"] == "Lunch"
    assert seeded_client.get("/api/expenses/99").status_code == 404
    assert seeded_client.get("/api/expenses/abc").status_code == 400


def test_out_of_range_ids_are_rejected_before_the_database(tmp_path, sample_payloads):
    store = SQLExpenseStore(f"sqlite:///{tmp_path / 'expenses.db'}")
    app = create_app(Settings(env="dev"), store=store, clock=lambda: NOW)
    app.config.update(TESTING=True)
    client = app.test_client()
    for raw in ("99999999999999999999", "0", "-1"):
        assert client.get(f"/api/expenses/{raw}").status_code == 400
        assert client.put(f"/api/expenses/{raw}", json=sample_payloads[0]).status_code == 400
        assert client.delete(f"/api/expenses/{raw}").status_code == 400
    store.close()


def test_update_and_delete(seeded_client, sample_payloads):
    response = seeded_client.put(
        "/api/expenses/1", json={**sample_payloads[0], "amount": "120.00", "notes": "bulk buy"}
    )
    assert response.status_code == 200
    assert response.get_json()["amount"] == "120.00"
    assert response.get_json()["notes"] == "bulk buy"

    assert seeded_client.put("/api/expenses/99", json=sample_payloads[0]).status_code == 404
    assert seeded_client.put("/api/expenses/1", json={"amount": 3}).status_code == 400

    assert seeded_client.delete("/api/expenses/1").status_code == 204
    assert seeded_client.delete("/api/expenses/1").status_code == 404
    assert seeded_client.delete("/api/expenses/x").status_code == 400


def test_list_is_date_descending(seeded_client):
    descriptions = [item["description"] for item in seeded_client.get("/api/expenses").get_json()]
    assert descriptions == ["Train ticket", "Lunch", "Groceries"]


def test_filter_by_category_and_date(seeded_client):
    response = seeded_client.get("/api/expenses/filter?category=food&dateFrom=2024-02-01")
    assert [item["description"] for item in response.get_json()] == ["Lunch"]

    response = seeded_client.get("/api/expenses?category=all&timeRange=month")
    assert [item["description"] for item in response.get_json()] == ["Train ticket", "Lunch"]


def test_filter_rejects_unknown_time_range(seeded_client):
    response = seeded_client.get("/api/expenses/filter?timeRange=decade")
    assert response.status_code == 400
    assert "timeRange" in response.get_json()["errors"]


def test_summary(seeded_client):
    assert seeded_client.get("/api/summary").get_json() == {
        "totalExpenses": 180.0,
        "monthlyExpenses": 80.0,
        "topCategory": "Food & Dining",
        "lastEntry": "Train ticket",
        "percentChange": -20.0,
    }


def test_reports(seeded_client):
    assert seeded_client.get("/api/reports/by-category").get_json() == {"food": 150.0, "travel": 30.0}

    months = seeded_client.get("/api/reports/by-month?year=2024").get_json()
    assert list(months) == ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                            "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    assert months["Jan"] == 100.0 and months["Feb"] == 80.0

    fallback = seeded_client.get("/api/reports/by-month?year=soon").get_json()
    assert fallback == months


def test_export_csv(seeded_client):
    response = seeded_client.get("/api/expenses/export")
    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "filename=expenses.csv" in response.headers["Content-Disposition"]
    rows = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
    assert [(row["Date"], row["Description"], row["Amount"]) for row in rows] == [
        ("2024-02-20", "Train ticket", "30.00"),
        ("2024-02-10", "Lunch", "50.00"),
        ("2024-01-15", "Groceries", "100.00"),
    ]


def test_seed_setting_populates_store():
    app = create_app(Settings(seed=True), store=InMemoryExpenseStore(), clock=lambda: NOW)
    client = app.test_client()
    assert len(client.get("/api/expenses").get_json()) == 8
