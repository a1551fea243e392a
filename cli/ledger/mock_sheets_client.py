"""
In-memory stand-in for the parts of gspread the ledger uses.

MockClient/MockSpreadsheet answer values_get, values_update, values_append,
values_batch_update, batch_update and fetch_sheet_metadata the way the
Sheets API does: missing tabs fail with "Unable to parse range", trailing
empty cells and rows are trimmed, deleteDimension shifts rows up. Tests can
queue failures per method and inspect call counts.
"""
import functools
import json
import re
import threading
import uuid
from collections import Counter, defaultdict, deque

from gspread.exceptions import APIError, SpreadsheetNotFound

from ledger.config import BUDGET_COLUMNS, BUDGET_SHEET_NAME, LEDGER_COLUMNS
from ledger.partitions import current_name, format_timestamp, now_local

DEMO_SPREADSHEET_ID = "demo"

QUOTED_RANGE = re.compile(r"^'((?:[^']|'')*)'(?:!(.*))?$")
PLAIN_RANGE = re.compile(r"^([^!]+)(?:!(.*))?$")
CELLS = re.compile(r"^([A-Z]*)(\d*)(?::([A-Z]*)(\d*))?$")


class MockResponse:
    """Just enough of requests.Response for gspread's APIError."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self._payload = {"error": {"code": status_code, "message": message, "status": "MOCK"}}
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload


def api_error(status_code: int, message: str) -> APIError:
    return APIError(MockResponse(status_code, message))


def column_index(letters: str) -> int:
    """0-based index of a column label ('A' -> 0)."""
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def parse_range(range_name: str):
    """Splits "'Mar 2025'!A2:F" into ('Mar 2025', (row0, col0, row1, col1)); None means open."""
    m = QUOTED_RANGE.match(range_name)
    if m:
        title, cells = m.group(1).replace("''", "'"), m.group(2)
    else:
        m = PLAIN_RANGE.match(range_name)
        title, cells = m.group(1), m.group(2)
    if not cells:
        return title, (0, 0, None, None)

    c = CELLS.match(cells.upper())
    if not c:
        raise api_error(400, f"Unable to parse range: {range_name}")
    start_col, start_row, end_col, end_row = c.groups()
    row0 = int(start_row) - 1 if start_row else 0
    col0 = column_index(start_col) if start_col else 0
    if end_col is None and end_row is None:
        # single cell
        return title, (row0, col0, row0, col0)
    row1 = int(end_row) - 1 if end_row else None
    col1 = column_index(end_col) if end_col else None
    return title, (row0, col0, row1, col1)


def _blank(value) -> bool:
    return value is None or value == ""


def _trim(rows: list[list]) -> list[list]:
    out = []
    for row in rows:
        row = list(row)
        while row and _blank(row[-1]):
            row.pop()
        out.append(row)
    while out and not out[-1]:
        out.pop()
    return out


def _recorded(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            self.calls[method.__name__] += 1
            queued = self.failures[method.__name__]
            if queued:
                raise queued.popleft()
            return method(self, *args, **kwargs)
    return wrapper


class MockSpreadsheet:
    def __init__(self, key: str, title: str = "Ledger"):
        self.id = key
        self.title = title
        self.properties = {"title": title, "timeZone": "Etc/GMT"}
        self.sheets: dict[str, dict] = {}
        self.formats: list[dict] = []
        self.calls: Counter = Counter()
        self.failures: dict[str, deque] = defaultdict(deque)
        self._next_sheet_id = 0
        self._lock = threading.RLock()

    # Test helpers

    def add_sheet(self, title: str, rows: list[list] | None = None) -> int:
        with self._lock:
            sheet_id = self._next_sheet_id
            self._next_sheet_id += 1
            self.sheets[title] = {"sheetId": sheet_id, "rows": [list(r) for r in rows or []]}
            return sheet_id

    def rows(self, title: str) -> list[list]:
        return _trim(self.sheets[title]["rows"])

    def fail_next(self, method: str, *errors: Exception) -> None:
        self.failures[method].extend(errors)

    def _sheet(self, range_name: str):
        title, bounds = parse_range(range_name)
        if title not in self.sheets:
            raise api_error(400, f"Unable to parse range: {range_name}")
        return self.sheets[title], bounds

    def _write(self, rows: list[list], row0: int, col0: int, values: list[list]) -> None:
        for r, value_row in enumerate(values):
            while len(rows) <= row0 + r:
                rows.append([])
            target = rows[row0 + r]
            for c, value in enumerate(value_row):
                while len(target) <= col0 + c:
                    target.append("")
                target[col0 + c] = value

    # gspread.Spreadsheet surface

    @_recorded
    def fetch_sheet_metadata(self, params=None):
        return {
            "spreadsheetId": self.id,
            "properties": dict(self.properties),
            "sheets": [
                {"properties": {"title": title, "sheetId": sheet["sheetId"], "index": i}}
                for i, (title, sheet) in enumerate(self.sheets.items())
            ],
        }

    @_recorded
    def values_get(self, range_name, params=None):
        sheet, (row0, col0, row1, col1) = self._sheet(range_name)
        rows = sheet["rows"]
        last_row = len(rows) - 1 if row1 is None else row1
        picked = []
        for r in range(row0, last_row + 1):
            row = rows[r] if r < len(rows) else []
            picked.append(row[col0:] if col1 is None else row[col0:col1 + 1])
        result = {"range": range_name, "majorDimension": "ROWS"}
        values = _trim(picked)
        if values:
            result["values"] = values
        return result

    @_recorded
    def values_update(self, range_name, params=None, body=None):
        sheet, (row0, col0, _, _) = self._sheet(range_name)
        values = (body or {}).get("values", [])
        self._write(sheet["rows"], row0, col0, values)
        return {"updatedRange": range_name, "updatedRows": len(values)}

    @_recorded
    def values_append(self, range_name, params, body):
        sheet, (_, col0, _, _) = self._sheet(range_name)
        rows = sheet["rows"]
        last = len(_trim(rows))
        del rows[last:]
        values = body.get("values", [])
        self._write(rows, last, col0, values)
        return {"updates": {"updatedRows": len(values)}}

    @_recorded
    def values_batch_update(self, body):
        for item in body.get("data", []):
            sheet, (row0, col0, _, _) = self._sheet(item["range"])
            self._write(sheet["rows"], row0, col0, item["values"])
        return {"spreadsheetId": self.id, "totalUpdatedCells": len(body.get("data", []))}

    @_recorded
    def batch_update(self, body):
        replies = []
        for request in body.get("requests", []):
            if "addSheet" in request:
                title = request["addSheet"]["properties"]["title"]
                if title in self.sheets:
                    raise api_error(400, f'A sheet with the name "{title}" already exists.')
                sheet_id = self.add_sheet(title)
                replies.append({"addSheet": {"properties": {"title": title, "sheetId": sheet_id}}})
            elif "updateSpreadsheetProperties" in request:
                self.properties.update(request["updateSpreadsheetProperties"]["properties"])
                replies.append({})
            elif "repeatCell" in request:
                self.formats.append(request["repeatCell"])
                replies.append({})
            elif "deleteDimension" in request:
                grid = request["deleteDimension"]["range"]
                sheet = self._sheet_by_id(grid["sheetId"])
                del sheet["rows"][grid["startIndex"]:grid["endIndex"]]
                replies.append({})
            else:
                raise api_error(400, f"Unsupported request: {list(request)}")
        return {"spreadsheetId": self.id, "replies": replies}

    def _sheet_by_id(self, sheet_id: int) -> dict:
        for sheet in self.sheets.values():
            if sheet["sheetId"] == sheet_id:
                return sheet
        raise api_error(400, f"No grid with id: {sheet_id}")


class MockClient:
    def __init__(self, spreadsheets: dict[str, MockSpreadsheet] | None = None):
        self.spreadsheets = spreadsheets or {}
        self.calls: Counter = Counter()

    def add_spreadsheet(self, key: str, title: str = "Ledger") -> MockSpreadsheet:
        spreadsheet = MockSpreadsheet(key, title)
        self.spreadsheets[key] = spreadsheet
        return spreadsheet

    def open_by_key(self, key):
        self.calls["open_by_key"] += 1
        if key not in self.spreadsheets:
            raise SpreadsheetNotFound(key)
        return self.spreadsheets[key]

    def create(self, title, folder_id=None):
        self.calls["create"] += 1
        spreadsheet = self.add_spreadsheet(uuid.uuid4().hex, title)
        spreadsheet.add_sheet("Sheet1")
        return spreadsheet


def get_mock_data() -> MockClient:
    """A client holding one demo spreadsheet with a few entries this month."""
    now = now_local()
    stamp = format_timestamp(now)
    client = MockClient()
    demo = client.add_spreadsheet(DEMO_SPREADSHEET_ID, "Demo Ledger")
    demo.add_sheet(current_name(now), [
        LEDGER_COLUMNS,
        [stamp, "Income", "Income", 5000000, "Salary", "demo0001"],
        [stamp, "Expense", "Food", 45000, "Lunch", "demo0002"],
        [stamp, "Expense", "Transport", 20000, "-", "demo0003"],
    ])
    demo.add_sheet(BUDGET_SHEET_NAME, [
        BUDGET_COLUMNS,
        ["Food", 1500000],
        ["Transport", 500000],
    ])
    return client


_mock_client: MockClient | None = None
_mock_lock = threading.Lock()


def get_client(credentials_path: str | None = None) -> MockClient:
    """Shared mock client, so state survives between requests in mock mode."""
    global _mock_client
    with _mock_lock:
        if _mock_client is None:
            _mock_client = get_mock_data()
        return _mock_client
