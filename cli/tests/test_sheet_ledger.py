from unittest.mock import MagicMock, patch

import pytest

from ledger.config import BUDGET_COLUMNS, BUDGET_SHEET_NAME, LEDGER_COLUMNS
from ledger.errors import RemoteOperationError
from ledger.identifiers import generate_id
from ledger.mock_sheets_client import api_error
from ledger.models import Balance, BudgetLine, Transaction

from conftest import SHEET_KEY


# Writer

def test_append_creates_month_tab(ledger, client, spreadsheet):
    record = Transaction.income("2025-03-15 10:30:00", 1000, "")
    txn_id = ledger.append(client, SHEET_KEY, record)

    assert record.id == txn_id
    assert spreadsheet.rows("Mar 2025") == [
        LEDGER_COLUMNS,
        ["2025-03-15 10:30:00", "Income", "Income", 1000, "-", txn_id],
    ]


def test_append_uses_month_of_record(ledger, client, spreadsheet):
    ledger.append(client, SHEET_KEY, Transaction.expense("2025-01-10 08:00:00", "Food", 50, "late entry"))
    assert "Jan 2025" in spreadsheet.sheets
    assert "Mar 2025" not in spreadsheet.sheets
    assert spreadsheet.rows("Jan 2025")[1][:5] == ["2025-01-10 08:00:00", "Expense", "Food", 50, "late entry"]


def test_append_avoids_existing_ids(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Mar 2025", march_rows)
    with patch("ledger.sheets_client.generate_id", wraps=generate_id) as mock_generate:
        txn_id = ledger.append(client, SHEET_KEY, Transaction.income("2025-03-15 10:30:00", 10))

    existing = mock_generate.call_args[0][0]
    assert existing == {"id000001", "id000002", "id000003"}
    assert txn_id not in existing


def test_ids_unique_within_month(ledger, client, spreadsheet):
    for n in range(20):
        ledger.append(client, SHEET_KEY, Transaction.expense("2025-03-15 10:30:00", "Food", n))
    ids = [row[5] for row in spreadsheet.rows("Mar 2025")[1:]]
    assert len(ids) == 20
    assert len(set(ids)) == 20


def test_append_is_not_resent_after_server_error(ledger, client, spreadsheet):
    spreadsheet.add_sheet("Mar 2025", [LEDGER_COLUMNS])
    spreadsheet.fail_next("values_append", api_error(503, "Backend error"))

    with pytest.raises(RemoteOperationError):
        ledger.append(client, SHEET_KEY, Transaction.income("2025-03-15 10:30:00", 10))
    assert spreadsheet.calls["values_append"] == 1
    assert spreadsheet.rows("Mar 2025") == [LEDGER_COLUMNS]


def test_append_retries_rate_limit(ledger, client, spreadsheet):
    spreadsheet.add_sheet("Mar 2025", [LEDGER_COLUMNS])
    spreadsheet.fail_next("values_append", api_error(429, "Quota exceeded"))

    ledger.append(client, SHEET_KEY, Transaction.income("2025-03-15 10:30:00", 10))
    assert spreadsheet.calls["values_append"] == 2
    assert len(spreadsheet.rows("Mar 2025")) == 2


# Tabs deleted by hand while cached

def test_append_recreates_tab_deleted_after_caching(ledger, client, spreadsheet):
    ledger.append(client, SHEET_KEY, Transaction.income("2025-03-15 10:30:00", 1000))
    del spreadsheet.sheets["Mar 2025"]

    txn_id = ledger.append(client, SHEET_KEY, Transaction.income("2025-03-15 10:31:00", 2000))
    assert spreadsheet.rows("Mar 2025") == [
        LEDGER_COLUMNS,
        ["2025-03-15 10:31:00", "Income", "Income", 2000, "-", txn_id],
    ]


def test_delete_by_id_after_tab_deleted(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Mar 2025", march_rows)
    ledger.calculate_balance(client, SHEET_KEY)
    del spreadsheet.sheets["Mar 2025"]

    assert ledger.delete_by_id(client, SHEET_KEY, "id000001") is False
    assert spreadsheet.rows("Mar 2025") == [LEDGER_COLUMNS]


def test_balance_after_tab_deleted(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Mar 2025", march_rows)
    assert ledger.calculate_balance(client, SHEET_KEY).row_count == 3
    del spreadsheet.sheets["Mar 2025"]

    assert ledger.calculate_balance(client, SHEET_KEY) == Balance(partition_exists=True)
    assert spreadsheet.rows("Mar 2025") == [LEDGER_COLUMNS]


def test_set_budget_after_budget_tab_deleted(ledger, client, spreadsheet):
    ledger.set_budget(client, SHEET_KEY, "Food", 500)
    del spreadsheet.sheets[BUDGET_SHEET_NAME]

    ledger.set_budget(client, SHEET_KEY, "Rent", 1000)
    assert spreadsheet.rows(BUDGET_SHEET_NAME) == [BUDGET_COLUMNS, ["Rent", 1000]]


# Reader / aggregator

def test_balance(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Mar 2025", march_rows)
    balance = ledger.calculate_balance(client, SHEET_KEY)
    assert balance == Balance(income=1000, expense=500, balance=500, partition_exists=True, row_count=3)


def test_balance_creates_current_month(ledger, client, spreadsheet):
    balance = ledger.calculate_balance(client, SHEET_KEY)
    assert balance == Balance(partition_exists=True)
    assert spreadsheet.rows("Mar 2025") == [LEDGER_COLUMNS]


def test_read_only_query_does_not_create_tab(ledger, client, spreadsheet):
    balance = ledger.calculate_balance(client, SHEET_KEY, partition="Jan 2025", allow_create=False)
    assert balance == Balance()
    assert not balance.partition_exists
    assert "Jan 2025" not in spreadsheet.sheets

    assert ledger.list_recent(client, SHEET_KEY, partition="Jan 2025", allow_create=False) == []
    assert "Jan 2025" not in spreadsheet.sheets


def test_list_recent(ledger, client, spreadsheet):
    rows = [LEDGER_COLUMNS] + [
        [f"2025-03-0{n} 09:00:00", "Expense", "Food", n * 10, f"meal {n}", f"id00000{n}"]
        for n in range(1, 8)
    ]
    spreadsheet.add_sheet("Mar 2025", rows)

    recent = ledger.list_recent(client, SHEET_KEY, limit=5)
    assert [r.id for r in recent] == ["id000003", "id000004", "id000005", "id000006", "id000007"]
    assert [r.row_index for r in recent] == [4, 5, 6, 7, 8]
    assert recent[-1].amount == 70
    assert recent[-1].description == "meal 7"

    assert ledger.list_recent(client, SHEET_KEY, limit=0) == []
    assert len(ledger.list_recent(client, SHEET_KEY, limit=50)) == 7


# Editor

def test_delete_by_id_round_trip(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Mar 2025", march_rows)

    assert ledger.delete_by_id(client, SHEET_KEY, "id000002") is True
    assert [row[5] for row in spreadsheet.rows("Mar 2025")[1:]] == ["id000001", "id000003"]
    assert ledger.delete_by_id(client, SHEET_KEY, "id000002") is False


def test_delete_by_id_only_looks_at_current_month(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Feb 2025", march_rows)
    assert ledger.delete_by_id(client, SHEET_KEY, "id000001") is False
    assert len(spreadsheet.rows("Feb 2025")) == 4


def test_delete_last(ledger, client, spreadsheet, march_rows):
    spreadsheet.add_sheet("Mar 2025", march_rows)

    assert ledger.delete_last(client, SHEET_KEY) is True
    assert [row[5] for row in spreadsheet.rows("Mar 2025")[1:]] == ["id000001", "id000002"]


def test_delete_last_without_rows(ledger, client, spreadsheet):
    assert ledger.delete_last(client, SHEET_KEY) is False
    # never creates the tab
    assert "Mar 2025" not in spreadsheet.sheets

    spreadsheet.add_sheet("Mar 2025", [LEDGER_COLUMNS])
    assert ledger.delete_last(client, SHEET_KEY) is False
    assert spreadsheet.rows("Mar 2025") == [LEDGER_COLUMNS]


# Budgets

def test_set_budget_creates_then_updates(ledger, client, spreadsheet):
    ledger.set_budget(client, SHEET_KEY, "Food", 500)
    ledger.set_budget(client, SHEET_KEY, "food ", 700)
    ledger.set_budget(client, SHEET_KEY, "Rent", 1000)

    assert spreadsheet.rows(BUDGET_SHEET_NAME) == [
        BUDGET_COLUMNS,
        ["Food", 700],
        ["Rent", 1000],
    ]


def test_budget_summary(ledger, client, spreadsheet):
    spreadsheet.add_sheet(BUDGET_SHEET_NAME, [BUDGET_COLUMNS, ["Food", 500], ["Rent", 1000]])
    spreadsheet.add_sheet("Mar 2025", [
        LEDGER_COLUMNS,
        ["2025-03-01 09:00:00", "Income", "Income", 5000, "-", "id000001"],
        ["2025-03-02 09:00:00", "Expense", "food", 300, "-", "id000002"],
        ["2025-03-03 09:00:00", "Expense", "Transport", 50, "-", "id000003"],
    ])

    assert ledger.get_budget_summary(client, SHEET_KEY) == [
        BudgetLine("Food", 500, 300, 200),
        BudgetLine("Rent", 1000, 0, 1000),
    ]


def test_budget_summary_without_month_tab(ledger, client, spreadsheet):
    ledger.set_budget(client, SHEET_KEY, "Food", 500)
    assert ledger.get_budget_summary(client, SHEET_KEY) == [BudgetLine("Food", 500, 0, 500)]
    assert "Mar 2025" not in spreadsheet.sheets


# Bootstrap

def test_create_spreadsheet(ledger, client):
    key = ledger.create_spreadsheet(client, "My Ledger")
    assert key in client.spreadsheets
    assert client.spreadsheets[key].title == "My Ledger"


def test_create_spreadsheet_failure_returns_none(ledger):
    client = MagicMock()
    client.create.side_effect = api_error(403, "Drive API has not been used in project")
    assert ledger.create_spreadsheet(client, "My Ledger") is None
