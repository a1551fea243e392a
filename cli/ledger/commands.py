"""
Write-boundary rules shared by the CLI and the HTTP API.

The engine trusts what it is given; these helpers turn free text into a
validated Transaction first and enforce the product rules: no entries in
future months, and no expenses before the month has any income.
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from ledger.errors import FutureDateError, InvalidInputError, NoIncomeError
from ledger.models import Balance, Transaction
from ledger.parser import parse_amount, split_expense, split_income
from ledger.partitions import (
    label_for_month,
    month_of,
    name_for_month,
    now_local,
    parse_leading_date,
    parse_month_year,
    is_future,
)
from ledger.sheets_client import SheetLedger

logger = logging.getLogger(__name__)

MONTH_FORMAT_HELP = (
    "Unrecognised month. Examples: 03/25, 03-25, 09/2025, september 2025, sep 2025"
)


@dataclass
class EntryResult:
    id: str
    record: Transaction
    balance: Balance  # current month after the write


@dataclass
class MonthRef:
    sheet_name: str
    label: str


def resolve_month(text: str | None, now: datetime | None = None) -> MonthRef:
    """Month tab and heading for an optional user month argument."""
    text = (text or "").strip()
    if not text:
        month, year = month_of(now or now_local())
    else:
        parsed = parse_month_year(text)
        if parsed is None:
            raise InvalidInputError(MONTH_FORMAT_HELP)
        month, year = parsed
    return MonthRef(name_for_month(month, year), label_for_month(month, year))


def _amount(text: str) -> int:
    amount = parse_amount(text)
    if amount is None or amount < 0:
        raise InvalidInputError(f'Amount "{text}" is not valid.')
    return amount


def _dated(text: str, now: datetime | None, usage: str) -> tuple[str, str]:
    timestamp, rest = parse_leading_date(text, now)
    if not rest:
        raise InvalidInputError(f"Wrong format. Usage: {usage}")
    if is_future(timestamp, now):
        raise FutureDateError("Entries can only be recorded for this month or earlier months.")
    return timestamp, rest


def record_income(
    ledger: SheetLedger,
    client,
    spreadsheet_id: str,
    text: str,
    now: datetime | None = None,
) -> EntryResult:
    """Records '[date] <amount> [description]' as income."""
    now = now or ledger.clock()
    usage = "[dd/mm/yy] <amount> [description]"
    timestamp, rest = _dated(text, now, usage)
    parts = split_income(rest)
    if parts is None:
        raise InvalidInputError(f"Wrong format. Usage: {usage}")
    amount_text, description = parts

    record = Transaction.income(timestamp, _amount(amount_text), description)
    txn_id = ledger.append(client, spreadsheet_id, record)
    balance = ledger.calculate_balance(client, spreadsheet_id)
    return EntryResult(txn_id, record, balance)


def record_expense(
    ledger: SheetLedger,
    client,
    spreadsheet_id: str,
    text: str,
    now: datetime | None = None,
) -> EntryResult:
    """Records '[date] <category> <amount> [description]' as an expense."""
    now = now or ledger.clock()
    usage = "[dd/mm/yy] <category> <amount> [description]"
    timestamp, rest = _dated(text, now, usage)
    parts = split_expense(rest)
    if parts is None:
        raise InvalidInputError(f"Wrong format. Usage: {usage}")
    category, amount_text, description = parts
    amount = _amount(amount_text)

    month_start = ledger.calculate_balance(client, spreadsheet_id)
    if month_start.income <= 0:
        raise NoIncomeError("No income recorded this month yet. Record income first.")

    record = Transaction.expense(timestamp, category, amount, description)
    txn_id = ledger.append(client, spreadsheet_id, record)
    balance = ledger.calculate_balance(client, spreadsheet_id)
    logger.info("Recorded expense %s in %s", txn_id, category)
    return EntryResult(txn_id, record, balance)
