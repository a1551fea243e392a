from ledger.models import Balance, BudgetLine, MonthYear, RecentRow, Transaction
from ledger.partitions import parse_month_year
from ledger.sheets_client import SheetLedger

__all__ = [
    "Balance",
    "BudgetLine",
    "MonthYear",
    "RecentRow",
    "SheetLedger",
    "Transaction",
    "parse_month_year",
]
