import logging
from datetime import datetime
from typing import Callable

import gspread
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError

from ledger.config import (
    BUDGET_SHEET_NAME,
    CACHE_TTL_SECONDS,
    ID_COLUMN,
    LAST_COLUMN,
    RECENT_LIMIT,
)
from ledger.errors import error_message, is_missing_range
from ledger.identifiers import generate_id
from ledger.models import Balance, BudgetLine, RecentRow, Transaction
from ledger.partitions import current_name, name_for_timestamp, now_local
from ledger.reports import balance_totals, budget_summary, spend_by_category
from ledger.retry import RetryExecutor
from ledger.schema import (
    USER_ENTERED,
    PartitionCache,
    SchemaManager,
    a1,
    cell_text,
)

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]


def get_client(credentials_path: str):
    """Authenticates with Google Sheets."""
    creds = Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
    client = gspread.authorize(creds)
    return client


def _has_content(row: list) -> bool:
    return any(cell_text(v) for v in row)


class SheetLedger:
    """
    Income/expense ledger stored in a Google spreadsheet, one tab per month.

    Every method takes the authenticated gspread client of the acting user
    and the key of that user's spreadsheet. Calls are plain sequences of
    remote requests; nothing here is atomic across requests.
    """

    def __init__(
        self,
        retry: RetryExecutor | None = None,
        cache: PartitionCache | None = None,
        schema: SchemaManager | None = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self.retry = retry or RetryExecutor()
        if schema is None:
            if cache is None:
                cache = PartitionCache(ttl=CACHE_TTL_SECONDS)
            schema = SchemaManager(self.retry, cache)
        self.schema = schema
        self.clock = clock

    @property
    def cache(self) -> PartitionCache:
        return self.schema.cache

    def open(self, client, spreadsheet_id: str):
        return self.retry.run(client.open_by_key, spreadsheet_id)

    def current_partition(self) -> str:
        return current_name(self.clock())

    # Bootstrap

    def create_spreadsheet(self, client, title: str) -> str | None:
        """Creates a new spreadsheet for a user. Returns its key, or None on failure."""
        try:
            spreadsheet = self.retry.run(client.create, title)
        except Exception as e:
            logger.error("Failed to create spreadsheet %r: %s", title, error_message(e))
            return None
        logger.info("Created spreadsheet %s (%r)", spreadsheet.id, title)
        return spreadsheet.id

    def _read_ensured(self, spreadsheet, sheet_name: str, cells: str) -> list[list]:
        """
        Reads a range of a tab that `ensure` (or `ensure_budget_sheet`) just vouched for.

        A cached tab may have been deleted by hand since it was checked; in
        that case the cache entry is dropped, the tab rebuilt and the read
        repeated once.
        """
        range_name = a1(sheet_name, cells)
        try:
            return self.schema.read_values(spreadsheet, range_name)
        except APIError as e:
            if not is_missing_range(e):
                raise
        logger.warning("Sheet %r is gone although cached, recreating it", sheet_name)
        self.cache.invalidate(spreadsheet.id, sheet_name)
        if sheet_name == BUDGET_SHEET_NAME:
            self.schema.ensure_budget_sheet(spreadsheet)
        else:
            self.schema.ensure(spreadsheet, sheet_name)
        return self.schema.read_values(spreadsheet, range_name)

    # Writer

    def append(self, client, spreadsheet_id: str, record: Transaction) -> str:
        """Appends a record to the tab of its own month and returns the new ID."""
        spreadsheet = self.open(client, spreadsheet_id)
        sheet_name = name_for_timestamp(record.timestamp)
        self.schema.ensure(spreadsheet, sheet_name)

        id_rows = self._read_ensured(spreadsheet, sheet_name, f"{ID_COLUMN}2:{ID_COLUMN}")
        existing = {cell_text(r[0]) for r in id_rows if r}
        existing.discard("")
        txn_id = generate_id(existing)

        self.retry.run_non_idempotent(
            spreadsheet.values_append,
            a1(sheet_name, f"A:{LAST_COLUMN}"),
            USER_ENTERED,
            {"values": [record.to_row(txn_id)]},
        )
        record.id = txn_id
        logger.info("Appended %s %s to %r as %s", record.kind, record.amount, sheet_name, txn_id)
        return txn_id

    # Reader / aggregator

    def _data_rows(self, spreadsheet, sheet_name: str, allow_create: bool) -> list[list] | None:
        """Data rows of a tab, or None when the tab is missing and may not be created."""
        if allow_create:
            self.schema.ensure(spreadsheet, sheet_name)
            return self._read_ensured(spreadsheet, sheet_name, f"A2:{LAST_COLUMN}")
        if not self.schema.exists(spreadsheet, sheet_name):
            return None

        try:
            return self.schema.read_values(spreadsheet, a1(sheet_name, f"A2:{LAST_COLUMN}"))
        except APIError as e:
            if is_missing_range(e):
                # tab vanished between the existence check and the read
                return None
            raise

    def calculate_balance(
        self,
        client,
        spreadsheet_id: str,
        partition: str | None = None,
        allow_create: bool = True,
    ) -> Balance:
        spreadsheet = self.open(client, spreadsheet_id)
        sheet_name = partition or self.current_partition()

        rows = self._data_rows(spreadsheet, sheet_name, allow_create)
        if rows is None:
            return Balance()

        income, expense = balance_totals(rows)
        return Balance(
            income=income,
            expense=expense,
            balance=income - expense,
            partition_exists=True,
            row_count=sum(1 for r in rows if _has_content(r)),
        )

    def list_recent(
        self,
        client,
        spreadsheet_id: str,
        limit: int = RECENT_LIMIT,
        partition: str | None = None,
        allow_create: bool = True,
    ) -> list[RecentRow]:
        """The last `limit` rows of a tab in sheet order, each with its row number."""
        spreadsheet = self.open(client, spreadsheet_id)
        sheet_name = partition or self.current_partition()

        rows = self._data_rows(spreadsheet, sheet_name, allow_create)
        if not rows or limit <= 0:
            return []

        start = max(0, len(rows) - limit)
        recent = []
        for offset, row in enumerate(rows[start:]):
            row = (list(row) + [""] * 6)[:6]
            try:
                amount = float(row[3])
            except (TypeError, ValueError):
                amount = 0
            recent.append(RecentRow(
                timestamp=row[0],
                kind=cell_text(row[1]),
                category=cell_text(row[2]),
                amount=int(amount) if float(amount).is_integer() else amount,
                description=cell_text(row[4]),
                id=cell_text(row[5]),
                row_index=start + offset + 2,
            ))
        return recent

    # Editor

    def _delete_row(self, spreadsheet, sheet_id: int, row_index: int) -> None:
        body = {
            "requests": [{
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": row_index - 1,
                        "endIndex": row_index,
                    }
                }
            }]
        }
        self.retry.run(spreadsheet.batch_update, body)

    def delete_by_id(self, client, spreadsheet_id: str, txn_id: str) -> bool:
        """Deletes the row with this ID from the current month. False if not found."""
        spreadsheet = self.open(client, spreadsheet_id)
        sheet_name = self.current_partition()
        self.schema.ensure(spreadsheet, sheet_name)

        target = cell_text(txn_id)
        id_rows = self._read_ensured(spreadsheet, sheet_name, f"{ID_COLUMN}2:{ID_COLUMN}")
        found_row = None
        for i, row in enumerate(id_rows):
            if row and cell_text(row[0]) == target:
                found_row = i + 2
                break
        if found_row is None:
            return False

        sheet_id = self.schema.sheet_id(spreadsheet, sheet_name)
        if sheet_id is None:
            return False

        self._delete_row(spreadsheet, sheet_id, found_row)
        logger.info("Deleted %s (row %d) from %r", target, found_row, sheet_name)
        return True

    def delete_last(self, client, spreadsheet_id: str) -> bool:
        """Deletes the last row of the current month. False if there is nothing to delete."""
        spreadsheet = self.open(client, spreadsheet_id)
        sheet_name = self.current_partition()
        sheet_id = self.schema.sheet_id(spreadsheet, sheet_name)
        if sheet_id is None:
            return False

        rows = self.schema.read_values(spreadsheet, a1(sheet_name, f"A2:{LAST_COLUMN}"))
        while rows and not _has_content(rows[-1]):
            rows.pop()
        if not rows:
            return False

        last_row = len(rows) + 1
        self._delete_row(spreadsheet, sheet_id, last_row)
        logger.info("Deleted last row %d from %r", last_row, sheet_name)
        return True

    # Budgets

    def set_budget(self, client, spreadsheet_id: str, category: str, amount: int) -> None:
        """Creates or updates (case-insensitively) the monthly budget of a category."""
        spreadsheet = self.open(client, spreadsheet_id)
        self.schema.ensure_budget_sheet(spreadsheet)
        category = category.strip()

        rows = self._read_ensured(spreadsheet, BUDGET_SHEET_NAME, "A2:B")
        row_index = None
        for i, row in enumerate(rows):
            if row and cell_text(row[0]).lower() == category.lower():
                row_index = i + 2
                break

        if row_index is None:
            self.retry.run_non_idempotent(
                spreadsheet.values_append,
                a1(BUDGET_SHEET_NAME, "A:B"),
                USER_ENTERED,
                {"values": [[category, amount]]},
            )
        else:
            self.schema.write_values(spreadsheet, a1(BUDGET_SHEET_NAME, f"B{row_index}"), [[amount]])

    def get_budget_summary(self, client, spreadsheet_id: str) -> list[BudgetLine]:
        """Budget, spend and remaining amount per budgeted category for the current month."""
        spreadsheet = self.open(client, spreadsheet_id)
        self.schema.ensure_budget_sheet(spreadsheet)
        budget_rows = self._read_ensured(spreadsheet, BUDGET_SHEET_NAME, "A2:B")

        sheet_name = self.current_partition()
        try:
            rows = self.schema.read_values(spreadsheet, a1(sheet_name, "A2:D"))
        except APIError as e:
            if not is_missing_range(e):
                raise
            rows = []

        return budget_summary(budget_rows, spend_by_category(rows))
