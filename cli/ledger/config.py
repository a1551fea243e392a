# Configuration for the spreadsheet ledger

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULTS = {
    "spreadsheet_id": "",
    "credentials_path": "cli/resources/credentials.json",
    "timezone": "Asia/Jakarta",
    "utc_offset_hours": 7,
    "currency_pattern": '"Rp"#,##0',
    "retry_attempts": 3,
    "retry_base_delay": 0.4,
    "cache_ttl_seconds": None,
    "recent_limit": 5,
}


def load_ledger_config() -> dict:
    """Loads settings from config/ledger_config.json or falls back to example."""
    cli_dir = Path(__file__).parent.parent
    config_path = cli_dir / "config/ledger_config.json"
    example_path = cli_dir / "config/ledger_config.example.json"

    config = dict(DEFAULTS)
    if config_path.exists():
        with open(config_path, 'r') as f:
            config.update(json.load(f))
    elif example_path.exists():
        logger.warning("config/ledger_config.json not found. Using example config.")
        with open(example_path, 'r') as f:
            config.update(json.load(f))

    return config


def use_mock() -> bool:
    return os.environ.get("LEDGER_USE_MOCK", "").lower() in ("1", "true", "yes")


_ledger_config = load_ledger_config()

SPREADSHEET_ID = _ledger_config["spreadsheet_id"]
CREDENTIALS_PATH = _ledger_config["credentials_path"]
TIMEZONE_NAME = _ledger_config["timezone"]
UTC_OFFSET_HOURS = int(_ledger_config["utc_offset_hours"])
CURRENCY_PATTERN = _ledger_config["currency_pattern"]
RETRY_ATTEMPTS = int(_ledger_config["retry_attempts"])
RETRY_BASE_DELAY = float(_ledger_config["retry_base_delay"])
CACHE_TTL_SECONDS = _ledger_config["cache_ttl_seconds"]
RECENT_LIMIT = int(_ledger_config["recent_limit"])

# Column layout of every month tab (order and text are load-bearing)
LEDGER_COLUMNS = ["Date", "Type", "Category", "Amount", "Description", "ID"]
ID_COLUMN = "F"
LAST_COLUMN = "F"

INCOME = "Income"
EXPENSE = "Expense"
# Income rows carry a fixed category label
INCOME_CATEGORY = "Income"
EMPTY_DESCRIPTION = "-"

BUDGET_SHEET_NAME = "Budgets"
BUDGET_COLUMNS = ["Category", "MonthlyBudget"]

DATE_TIME_PATTERN = "dd mmm yyyy, hh:mm:ss"

# HTTP statuses worth another attempt
TRANSIENT_STATUSES = {429, 500, 502, 503, 504}
