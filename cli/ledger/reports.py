import pandas as pd

from ledger.config import BUDGET_COLUMNS, EXPENSE, INCOME, LEDGER_COLUMNS
from ledger.models import BudgetLine


def whole(value: float) -> float | int:
    """Amounts are whole currency units; drop the float noise pandas adds."""
    value = float(value)
    return int(value) if value.is_integer() else value


def rows_to_frame(rows: list[list], columns: list[str] = LEDGER_COLUMNS) -> pd.DataFrame:
    """
    Builds a DataFrame from raw sheet rows.

    The Sheets API trims trailing empty cells, so rows are padded to the
    full column count first. AMOUNT-like columns are left untouched here.
    """
    if not rows:
        return pd.DataFrame(columns=columns)
    width = len(columns)
    padded = [(list(r) + [""] * width)[:width] for r in rows]
    return pd.DataFrame(padded, columns=columns)


def numeric(series: pd.Series) -> pd.Series:
    # Non-numeric cells become NaN and are ignored by sums
    return pd.to_numeric(series, errors="coerce")


def balance_totals(rows: list[list]) -> tuple[float, float]:
    """Returns (income, expense) for the data rows of a month tab."""
    df = rows_to_frame(rows)
    if df.empty:
        return 0, 0
    df["Amount"] = numeric(df["Amount"])
    df = df.dropna(subset=["Amount"])
    kind = df["Type"].astype(str).str.strip()

    income = df.loc[kind == INCOME, "Amount"].sum()
    expense = df.loc[kind == EXPENSE, "Amount"].sum()
    return whole(income), whole(expense)


def spend_by_category(rows: list[list]) -> dict[str, float]:
    """Sums expense amounts per lower-cased category."""
    df = rows_to_frame(rows)
    if df.empty:
        return {}
    df = df[df["Type"].astype(str).str.strip() == EXPENSE].copy()
    df["CATEGORY_KEY"] = df["Category"].astype(str).str.strip().str.lower()
    df = df[df["CATEGORY_KEY"] != ""].copy()
    df["Amount"] = numeric(df["Amount"]).fillna(0)
    if df.empty:
        return {}
    totals = df.groupby("CATEGORY_KEY")["Amount"].sum()
    return {cat: whole(total) for cat, total in totals.items()}


def budget_summary(budget_rows: list[list], spent: dict[str, float]) -> list[BudgetLine]:
    """
    Joins the budget tab against spend per category.

    Every budgeted category is listed, even without spend. Spend in a
    category without a budget is left out. Display names keep the casing of
    the first budget row for that category.
    """
    df = rows_to_frame(budget_rows, BUDGET_COLUMNS)
    if df.empty:
        return []
    df["Category"] = df["Category"].astype(str).str.strip()
    df = df[df["Category"] != ""].copy()
    df["CATEGORY_KEY"] = df["Category"].str.lower()
    df["MonthlyBudget"] = numeric(df["MonthlyBudget"]).fillna(0)

    budgets = df.groupby("CATEGORY_KEY", sort=False).agg(
        Category=("Category", "first"),
        MonthlyBudget=("MonthlyBudget", "last"),
    )

    lines = []
    for key, row in budgets.iterrows():
        budget = whole(row["MonthlyBudget"])
        used = spent.get(key, 0)
        lines.append(BudgetLine(
            category=row["Category"],
            budget=budget,
            spent=used,
            remaining=whole(budget - used),
        ))
    return lines
