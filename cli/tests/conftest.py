from datetime import datetime

import pytest

from ledger.config import LEDGER_COLUMNS
from ledger.mock_sheets_client import MockClient
from ledger.partitions import LEDGER_TZ
from ledger.retry import RetryExecutor
from ledger.sheets_client import SheetLedger

# Mid-March 2025, Jakarta time
NOW = datetime(2025, 3, 15, 10, 30, 0, tzinfo=LEDGER_TZ)
SHEET_KEY = "sheet-1"


def no_sleep(_seconds):
    pass


@pytest.fixture
def client():
    client = MockClient()
    client.add_spreadsheet(SHEET_KEY)
    return client


@pytest.fixture
def spreadsheet(client):
    return client.open_by_key(SHEET_KEY)


@pytest.fixture
def ledger():
    return SheetLedger(retry=RetryExecutor(sleep=no_sleep), clock=lambda: NOW)


@pytest.fixture
def march_rows():
    return [
        LEDGER_COLUMNS,
        ["2025-03-01 09:00:00", "Income", "Income", 1000, "Salary", "id000001"],
        ["2025-03-02 12:00:00", "Expense", "Food", 400, "Lunch", "id000002"],
        ["2025-03-03 18:00:00", "Expense", "Transport", 100, "-", "id000003"],
    ]
