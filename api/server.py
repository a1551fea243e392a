"""
FastAPI server for the spreadsheet ledger.
Exposes the ledger operations (record, totals, history, delete, budgets) as JSON endpoints.
"""
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Union

# Add cli directory to path for imports
CLI_DIR = Path(__file__).parent.parent / "cli"
sys.path.insert(0, str(CLI_DIR))

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from gspread.exceptions import APIError, SpreadsheetNotFound
from pydantic import BaseModel
from rich.logging import RichHandler

from ledger import mock_sheets_client
from ledger.commands import record_expense, record_income, resolve_month
from ledger.config import CREDENTIALS_PATH as CONFIGURED_CREDENTIALS, RECENT_LIMIT, use_mock
from ledger.errors import (
    FutureDateError,
    InvalidInputError,
    NoIncomeError,
    RemoteOperationError,
    error_message,
)
from ledger.parser import parse_amount
from ledger.partitions import format_timestamp_for_display
from ledger.sheets_client import SheetLedger, get_client

logging.basicConfig(level=logging.INFO, format="%(message)s", handlers=[RichHandler(show_path=False)])
logger = logging.getLogger("ledger.api")

app = FastAPI(title="Sheet Ledger API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

CREDENTIALS_PATH = Path(CONFIGURED_CREDENTIALS)
if not CREDENTIALS_PATH.is_absolute():
    CREDENTIALS_PATH = CLI_DIR.parent / CREDENTIALS_PATH

ledger = SheetLedger()


class CreateRequest(BaseModel):
    title: str = "Money Ledger"


class EntryRequest(BaseModel):
    text: str  # e.g. "03/09/25 food 15rb lunch"


class BudgetRequest(BaseModel):
    category: str
    amount: Union[int, str]


def get_sheets_client():
    if use_mock():
        return mock_sheets_client.get_client()
    if not CREDENTIALS_PATH.exists():
        raise HTTPException(status_code=500, detail="Credentials file not found")
    return get_client(str(CREDENTIALS_PATH))


def guarded(action):
    """Maps ledger failures to HTTP errors."""
    try:
        return action()
    except (InvalidInputError, FutureDateError, NoIncomeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SpreadsheetNotFound:
        raise HTTPException(status_code=404, detail="Spreadsheet not found")
    except RemoteOperationError as e:
        logger.error("Remote operation failed: %s", e)
        raise HTTPException(status_code=502, detail="Google Sheets request failed, please retry")
    except APIError as e:
        logger.error("Google Sheets error: %s", error_message(e))
        raise HTTPException(status_code=502, detail=error_message(e))


def entry_response(result) -> dict:
    return {
        "id": result.id,
        "record": asdict(result.record),
        "month_balance": asdict(result.balance),
    }


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


@app.post("/api/sheets")
def create_sheet(request: CreateRequest):
    """Create a new ledger spreadsheet."""
    client = get_sheets_client()
    key = ledger.create_spreadsheet(client, request.title)
    if not key:
        raise HTTPException(status_code=502, detail="Could not create spreadsheet")
    return {"spreadsheet_id": key}


@app.post("/api/sheets/{spreadsheet_id}/income")
def add_income(spreadsheet_id: str, request: EntryRequest):
    client = get_sheets_client()
    result = guarded(lambda: record_income(ledger, client, spreadsheet_id, request.text))
    return entry_response(result)


@app.post("/api/sheets/{spreadsheet_id}/expenses")
def add_expense(spreadsheet_id: str, request: EntryRequest):
    client = get_sheets_client()
    result = guarded(lambda: record_expense(ledger, client, spreadsheet_id, request.text))
    return entry_response(result)


@app.get("/api/sheets/{spreadsheet_id}/balance")
def get_balance(spreadsheet_id: str, month: Optional[str] = None):
    """Totals for a month. Asking for a past month never creates its tab."""
    client = get_sheets_client()
    target = guarded(lambda: resolve_month(month, ledger.clock()))
    balance = guarded(lambda: ledger.calculate_balance(
        client, spreadsheet_id, partition=target.sheet_name, allow_create=not month
    ))
    return {"month": target.label, "sheet": target.sheet_name, **asdict(balance)}


@app.get("/api/sheets/{spreadsheet_id}/transactions")
def get_transactions(spreadsheet_id: str, month: Optional[str] = None, limit: int = RECENT_LIMIT):
    client = get_sheets_client()
    target = guarded(lambda: resolve_month(month, ledger.clock()))
    rows = guarded(lambda: ledger.list_recent(
        client, spreadsheet_id, limit, partition=target.sheet_name, allow_create=False
    ))
    transactions = []
    for row in rows:
        item = asdict(row)
        item["display_time"] = format_timestamp_for_display(row.timestamp)
        transactions.append(item)
    return {"month": target.label, "transactions": transactions}


# Registered before the {txn_id} route so "last" is not taken for an ID
@app.delete("/api/sheets/{spreadsheet_id}/transactions/last")
def delete_last_transaction(spreadsheet_id: str):
    client = get_sheets_client()
    if not guarded(lambda: ledger.delete_last(client, spreadsheet_id)):
        raise HTTPException(status_code=404, detail="No transactions to delete this month")
    return {"deleted": True}


@app.delete("/api/sheets/{spreadsheet_id}/transactions/{txn_id}")
def delete_transaction(spreadsheet_id: str, txn_id: str):
    client = get_sheets_client()
    if not guarded(lambda: ledger.delete_by_id(client, spreadsheet_id, txn_id)):
        raise HTTPException(status_code=404, detail=f"ID {txn_id} not found in this month")
    return {"deleted": True, "id": txn_id}


@app.put("/api/sheets/{spreadsheet_id}/budgets")
def set_budget(spreadsheet_id: str, request: BudgetRequest):
    amount = parse_amount(str(request.amount))
    if amount is None or amount < 0 or not request.category.strip():
        raise HTTPException(status_code=400, detail="Budget amount is not valid")
    client = get_sheets_client()
    guarded(lambda: ledger.set_budget(client, spreadsheet_id, request.category, amount))
    return {"category": request.category.strip(), "budget": amount}


@app.get("/api/sheets/{spreadsheet_id}/budgets")
def get_budgets(spreadsheet_id: str):
    client = get_sheets_client()
    lines = guarded(lambda: ledger.get_budget_summary(client, spreadsheet_id))
    return {"budgets": [asdict(line) for line in lines]}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
