import pytest
from fastapi.testclient import TestClient
import os
import sys
from pathlib import Path

# Add project roots
ROOT_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(ROOT_DIR))
sys.path.insert(0, str(ROOT_DIR / "cli"))

os.environ["LEDGER_USE_MOCK"] = "true"

from api import server
from api.server import app
from ledger import mock_sheets_client
from ledger.mock_sheets_client import DEMO_SPREADSHEET_ID, api_error
from ledger.retry import RetryExecutor
from ledger.sheets_client import SheetLedger

client = TestClient(app)
BASE = f"/api/sheets/{DEMO_SPREADSHEET_ID}"


@pytest.fixture(autouse=True)
def fresh_mock(monkeypatch):
    """Fresh demo data and cache for every test."""
    monkeypatch.setattr(mock_sheets_client, "_mock_client", None)
    monkeypatch.setattr(server, "ledger", SheetLedger(retry=RetryExecutor(sleep=lambda _: None)))


def demo_spreadsheet():
    return mock_sheets_client.get_client().open_by_key(DEMO_SPREADSHEET_ID)


def test_health_check():
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_get_balance():
    response = client.get(f"{BASE}/balance")
    assert response.status_code == 200
    data = response.json()
    assert data["income"] == 5000000
    assert data["expense"] == 65000
    assert data["balance"] == 4935000
    assert data["row_count"] == 3
    assert data["partition_exists"] is True


def test_balance_of_missing_month_is_read_only():
    response = client.get(f"{BASE}/balance", params={"month": "01/20"})
    assert response.status_code == 200
    data = response.json()
    assert data["month"] == "January 2020"
    assert data["partition_exists"] is False
    assert "Jan 2020" not in demo_spreadsheet().sheets


def test_bad_month_is_rejected():
    response = client.get(f"{BASE}/transactions", params={"month": "13/25"})
    assert response.status_code == 400


def test_get_transactions():
    response = client.get(f"{BASE}/transactions")
    assert response.status_code == 200
    transactions = response.json()["transactions"]
    assert [t["id"] for t in transactions] == ["demo0001", "demo0002", "demo0003"]
    assert [t["row_index"] for t in transactions] == [2, 3, 4]
    assert all(t["display_time"] != "-" for t in transactions)


def test_add_income_and_expense():
    response = client.post(f"{BASE}/income", json={"text": "1jt bonus"})
    assert response.status_code == 200
    assert response.json()["month_balance"]["income"] == 6000000

    response = client.post(f"{BASE}/expenses", json={"text": "food 15rb lunch"})
    assert response.status_code == 200
    data = response.json()
    assert data["record"]["category"] == "food"
    assert data["month_balance"]["expense"] == 80000
    assert len(data["id"]) == 8


def test_invalid_entries():
    assert client.post(f"{BASE}/expenses", json={"text": "food lots"}).status_code == 400
    # far-future month
    assert client.post(f"{BASE}/income", json={"text": "01/01/99 100k"}).status_code == 400


def test_delete_transaction():
    response = client.delete(f"{BASE}/transactions/demo0002")
    assert response.status_code == 200
    assert client.get(f"{BASE}/balance").json()["expense"] == 20000

    assert client.delete(f"{BASE}/transactions/demo0002").status_code == 404


def test_delete_last_transaction():
    response = client.delete(f"{BASE}/transactions/last")
    assert response.status_code == 200
    ids = [t["id"] for t in client.get(f"{BASE}/transactions").json()["transactions"]]
    assert ids == ["demo0001", "demo0002"]


def test_budgets():
    budgets = client.get(f"{BASE}/budgets").json()["budgets"]
    food = next(b for b in budgets if b["category"] == "Food")
    assert food == {"category": "Food", "budget": 1500000, "spent": 45000, "remaining": 1455000}

    response = client.put(f"{BASE}/budgets", json={"category": "food", "amount": "2jt"})
    assert response.status_code == 200
    budgets = client.get(f"{BASE}/budgets").json()["budgets"]
    assert len(budgets) == 2
    assert budgets[0]["budget"] == 2000000


def test_invalid_budget():
    response = client.put(f"{BASE}/budgets", json={"category": "Food", "amount": "lots"})
    assert response.status_code == 400


def test_create_sheet():
    response = client.post("/api/sheets", json={"title": "New Ledger"})
    assert response.status_code == 200
    key = response.json()["spreadsheet_id"]
    assert key in mock_sheets_client.get_client().spreadsheets


def test_unknown_spreadsheet():
    response = client.get("/api/sheets/missing/balance")
    assert response.status_code == 404


def test_remote_failure_maps_to_bad_gateway():
    demo_spreadsheet().fail_next("values_get", *[api_error(503, "Backend error")] * 3)
    response = client.get(f"{BASE}/balance")
    assert response.status_code == 502
