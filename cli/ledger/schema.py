"""
Keeps month tabs (and the budget tab) in the shape the ledger relies on.

`SchemaManager.ensure` creates a missing tab with the canonical header and
formatting, repairs a drifted header, and backfills IDs on rows that predate
the ID column. Known-good tabs are remembered in a `PartitionCache` so the
checks run once per tab per process.
"""
import logging
import threading
import time
from typing import Callable

import gspread
from gspread.exceptions import APIError

from ledger.config import (
    BUDGET_COLUMNS,
    BUDGET_SHEET_NAME,
    CURRENCY_PATTERN,
    DATE_TIME_PATTERN,
    ID_COLUMN,
    LAST_COLUMN,
    LEDGER_COLUMNS,
    TIMEZONE_NAME,
)
from ledger.errors import is_duplicate_sheet, is_missing_range
from ledger.identifiers import generate_id
from ledger.retry import RetryExecutor

logger = logging.getLogger(__name__)

USER_ENTERED = {"valueInputOption": "USER_ENTERED"}
UNFORMATTED = {"valueRenderOption": "UNFORMATTED_VALUE"}

DATE_COLUMN_INDEX = LEDGER_COLUMNS.index("Date")
AMOUNT_COLUMN_INDEX = LEDGER_COLUMNS.index("Amount")
ID_COLUMN_INDEX = LEDGER_COLUMNS.index("ID")


def a1(sheet_name: str, cells: str) -> str:
    """Quoted A1 range, e.g. 'Mar 2025'!A1:F1."""
    return gspread.utils.absolute_range_name(sheet_name, cells)


def cell_text(value) -> str:
    # IDs made only of digits come back as numbers
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value if value is not None else "").strip()


def header_matches(header: list, expected: list[str]) -> bool:
    if len(header) != len(expected):
        return False
    return all(cell_text(v).lower() == want.lower() for v, want in zip(header, expected))


class PartitionCache:
    """
    Remembers which (spreadsheet, tab) pairs are known to be in shape.

    Safe to share between threads. With a `ttl` entries expire, so an
    externally edited tab is re-checked eventually; `invalidate` drops
    entries immediately.
    """

    def __init__(self, ttl: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def has(self, spreadsheet_id: str, sheet_name: str) -> bool:
        key = (spreadsheet_id, sheet_name)
        with self._lock:
            added = self._entries.get(key)
            if added is None:
                return False
            if self.ttl is not None and self.clock() - added > self.ttl:
                del self._entries[key]
                return False
            return True

    def add(self, spreadsheet_id: str, sheet_name: str) -> None:
        with self._lock:
            self._entries[(spreadsheet_id, sheet_name)] = self.clock()

    def invalidate(self, spreadsheet_id: str | None = None, sheet_name: str | None = None) -> None:
        """Drops one tab, every tab of one spreadsheet, or everything."""
        with self._lock:
            if spreadsheet_id is None:
                self._entries.clear()
                return
            for key in list(self._entries):
                if key[0] == spreadsheet_id and sheet_name in (None, key[1]):
                    del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SchemaManager:
    def __init__(
        self,
        retry: RetryExecutor | None = None,
        cache: PartitionCache | None = None,
        timezone_name: str = TIMEZONE_NAME,
        currency_pattern: str = CURRENCY_PATTERN,
    ):
        self.retry = retry or RetryExecutor()
        self.cache = cache if cache is not None else PartitionCache()
        self.timezone_name = timezone_name
        self.currency_pattern = currency_pattern

    # Remote helpers

    def read_values(self, spreadsheet, range_name: str) -> list[list]:
        result = self.retry.run(spreadsheet.values_get, range_name, params=UNFORMATTED)
        return result.get("values", [])

    def write_values(self, spreadsheet, range_name: str, values: list[list]):
        return self.retry.run(
            spreadsheet.values_update, range_name, params=USER_ENTERED, body={"values": values}
        )

    def sheet_id(self, spreadsheet, sheet_name: str) -> int | None:
        """Numeric sheetId of a tab, or None if the tab does not exist."""
        metadata = self.retry.run(spreadsheet.fetch_sheet_metadata)
        for sheet in metadata.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == sheet_name:
                return props.get("sheetId")
        return None

    def exists(self, spreadsheet, sheet_name: str) -> bool:
        return self.sheet_id(spreadsheet, sheet_name) is not None

    def add_sheet(self, spreadsheet, sheet_name: str) -> int | None:
        body = {"requests": [{"addSheet": {"properties": {"title": sheet_name}}}]}
        response = self.retry.run(spreadsheet.batch_update, body)
        replies = response.get("replies") or [{}]
        return replies[0].get("addSheet", {}).get("properties", {}).get("sheetId")

    # Month tabs

    def ensure(self, spreadsheet, sheet_name: str) -> None:
        """Makes sure the month tab exists, has the canonical header and every row has an ID."""
        if self.cache.has(spreadsheet.id, sheet_name):
            return

        try:
            header = self.read_values(spreadsheet, a1(sheet_name, f"A1:{LAST_COLUMN}1"))
        except APIError as e:
            if not is_missing_range(e):
                raise
            logger.info("Sheet %r not found, creating it", sheet_name)
            if self._create_partition(spreadsheet, sheet_name):
                self.cache.add(spreadsheet.id, sheet_name)
                return
            # another writer created it first; check it like any existing tab
            header = self.read_values(spreadsheet, a1(sheet_name, f"A1:{LAST_COLUMN}1"))

        if not header or not header_matches(header[0], LEDGER_COLUMNS):
            logger.info("Repairing header of %r", sheet_name)
            self.write_values(spreadsheet, a1(sheet_name, "A1"), [LEDGER_COLUMNS])

        self.backfill_ids(spreadsheet, sheet_name)
        self.cache.add(spreadsheet.id, sheet_name)

    def backfill_ids(self, spreadsheet, sheet_name: str) -> int:
        """Assigns IDs to data rows that have none. Returns how many were written."""
        rows = self.read_values(spreadsheet, a1(sheet_name, f"A2:{LAST_COLUMN}"))
        if not rows:
            return 0

        seen = {cell_text(r[ID_COLUMN_INDEX]) for r in rows if len(r) > ID_COLUMN_INDEX}
        seen.discard("")

        updates = []
        for i, row in enumerate(rows):
            if not any(cell_text(v) for v in row):
                continue  # blank line, not a record
            current = cell_text(row[ID_COLUMN_INDEX]) if len(row) > ID_COLUMN_INDEX else ""
            if current:
                continue
            new_id = generate_id(seen)
            seen.add(new_id)
            updates.append({
                'range': a1(sheet_name, f"{ID_COLUMN}{i + 2}"),
                'values': [[new_id]]
            })

        if updates:
            body = dict(USER_ENTERED, data=updates)
            self.retry.run(spreadsheet.values_batch_update, body)
            logger.info("Backfilled %d missing IDs in %r", len(updates), sheet_name)
        return len(updates)

    def _create_partition(self, spreadsheet, sheet_name: str) -> bool:
        """Adds and formats a month tab. False if a tab of that name already exists."""
        try:
            sheet_id = self.add_sheet(spreadsheet, sheet_name)
        except APIError as e:
            if not is_duplicate_sheet(e):
                raise
            logger.info("Sheet %r was created concurrently", sheet_name)
            return False

        self.write_values(spreadsheet, a1(sheet_name, "A1"), [LEDGER_COLUMNS])
        if sheet_id is None:
            return True

        def column_format(index: int, number_format: dict) -> dict:
            return {
                "repeatCell": {
                    "range": {"sheetId": sheet_id, "startColumnIndex": index, "endColumnIndex": index + 1},
                    "cell": {"userEnteredFormat": {"numberFormat": number_format}},
                    "fields": "userEnteredFormat.numberFormat",
                }
            }

        requests = [
            {
                "updateSpreadsheetProperties": {
                    "properties": {"timeZone": self.timezone_name},
                    "fields": "timeZone",
                }
            },
            column_format(DATE_COLUMN_INDEX, {"type": "DATE_TIME", "pattern": DATE_TIME_PATTERN}),
            column_format(AMOUNT_COLUMN_INDEX, {"type": "CURRENCY", "pattern": self.currency_pattern}),
        ]
        self.retry.run(spreadsheet.batch_update, {"requests": requests})
        return True

    # Budget tab

    def ensure_budget_sheet(self, spreadsheet) -> None:
        if self.cache.has(spreadsheet.id, BUDGET_SHEET_NAME):
            return
        try:
            header = self.read_values(spreadsheet, a1(BUDGET_SHEET_NAME, "A1:B1"))
        except APIError as e:
            if not is_missing_range(e):
                raise
            logger.info("Budget sheet not found, creating it")
            try:
                self.add_sheet(spreadsheet, BUDGET_SHEET_NAME)
                header = []
            except APIError as dup:
                if not is_duplicate_sheet(dup):
                    raise
                header = self.read_values(spreadsheet, a1(BUDGET_SHEET_NAME, "A1:B1"))

        if not header or not header_matches(header[0], BUDGET_COLUMNS):
            self.write_values(spreadsheet, a1(BUDGET_SHEET_NAME, "A1"), [BUDGET_COLUMNS])
        self.cache.add(spreadsheet.id, BUDGET_SHEET_NAME)
