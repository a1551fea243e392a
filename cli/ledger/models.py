from dataclasses import dataclass
from typing import NamedTuple

from ledger.config import EMPTY_DESCRIPTION, EXPENSE, INCOME, INCOME_CATEGORY


class MonthYear(NamedTuple):
    month: int
    year: int


@dataclass
class Transaction:
    """One ledger entry as written to a month tab."""
    timestamp: str  # "YYYY-MM-DD HH:MM:SS", fixed UTC+7 wall time
    kind: str       # INCOME or EXPENSE
    category: str
    amount: int
    description: str = ""
    id: str = ""

    @classmethod
    def income(cls, timestamp: str, amount: int, description: str = "") -> "Transaction":
        return cls(timestamp, INCOME, INCOME_CATEGORY, amount, description)

    @classmethod
    def expense(cls, timestamp: str, category: str, amount: int, description: str = "") -> "Transaction":
        return cls(timestamp, EXPENSE, category, amount, description)

    def to_row(self, txn_id: str) -> list:
        return [
            self.timestamp,
            self.kind,
            self.category,
            self.amount,
            self.description.strip() or EMPTY_DESCRIPTION,
            txn_id,
        ]


@dataclass
class Balance:
    income: float = 0
    expense: float = 0
    balance: float = 0
    partition_exists: bool = False
    row_count: int = 0


@dataclass
class RecentRow:
    timestamp: object  # serial number or string, as stored
    kind: str
    category: str
    amount: float
    description: str
    id: str
    row_index: int  # 1-based position in the tab, header is row 1


@dataclass
class BudgetLine:
    category: str
    budget: float
    spent: float
    remaining: float
