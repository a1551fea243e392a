import logging
from typing import List, Optional

import typer
from gspread.exceptions import APIError, SpreadsheetNotFound
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ledger import mock_sheets_client
from ledger.commands import record_expense, record_income, resolve_month
from ledger.config import CREDENTIALS_PATH, RECENT_LIMIT, SPREADSHEET_ID, use_mock
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

app = typer.Typer(help="Personal income/expense ledger kept in a Google Sheet.")
budget_app = typer.Typer(help="Monthly budgets per category.")
app.add_typer(budget_app, name="budget")

console = Console()
ledger = SheetLedger()


def connect(credentials_path: str):
    """Google client, or the in-memory one when LEDGER_USE_MOCK is set."""
    if use_mock():
        return mock_sheets_client.get_client(credentials_path)
    return get_client(credentials_path)


def money(amount) -> str:
    return "Rp" + f"{amount:,.0f}".replace(",", ".")


def fail(message: str, style: str = "bold red"):
    console.print(f"[{style}]{message}[/{style}]")
    raise typer.Exit(code=1)


def run_safely(action):
    """Runs a ledger call, turning known failures into friendly messages."""
    try:
        return action()
    except (InvalidInputError, FutureDateError, NoIncomeError) as e:
        fail(str(e), style="yellow")
    except SpreadsheetNotFound:
        fail("Spreadsheet not found or not shared with these credentials.")
    except (RemoteOperationError, APIError) as e:
        logging.getLogger(__name__).debug("remote failure", exc_info=True)
        fail(f"Google Sheets request failed, please try again. ({error_message(e)})")


@app.callback()
def main(
    ctx: typer.Context,
    sheet_id: str = typer.Option(SPREADSHEET_ID, "--sheet-id", "-s", help="Spreadsheet key of the ledger"),
    credentials_path: str = typer.Option(CREDENTIALS_PATH, "--creds", help="Path to Google Cloud credentials"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    ctx.obj = {"sheet_id": sheet_id, "creds": credentials_path}


def _target(ctx: typer.Context):
    sheet_id = ctx.obj["sheet_id"]
    if not sheet_id:
        fail("No spreadsheet configured. Pass --sheet-id or set spreadsheet_id in config/ledger_config.json.")
    return connect(ctx.obj["creds"]), sheet_id


@app.command()
def create(
    ctx: typer.Context,
    title: str = typer.Argument("Money Ledger", help="Title of the new spreadsheet"),
):
    """
    Create a new ledger spreadsheet.
    """
    client = connect(ctx.obj["creds"])
    key = ledger.create_spreadsheet(client, title)
    if not key:
        fail("Could not create the spreadsheet.")
    console.print(f"[bold green]Created spreadsheet:[/bold green] {key}")
    console.print(f"https://docs.google.com/spreadsheets/d/{key}")


@app.command()
def income(
    ctx: typer.Context,
    text: List[str] = typer.Argument(..., help="[dd/mm/yy] <amount> [description], e.g. '500k bonus'"),
):
    """
    Record income.
    """
    client, sheet_id = _target(ctx)
    result = run_safely(lambda: record_income(ledger, client, sheet_id, " ".join(text)))
    console.print(f"[bold green]Income {money(result.record.amount)} recorded.[/bold green] ID: [cyan]{result.id}[/cyan]")
    console.print(f"Income this month: [bold]{money(result.balance.income)}[/bold]")


@app.command()
def expense(
    ctx: typer.Context,
    text: List[str] = typer.Argument(..., help="[dd/mm/yy] <category> <amount> [description], e.g. 'food 15rb lunch'"),
):
    """
    Record an expense.
    """
    client, sheet_id = _target(ctx)
    result = run_safely(lambda: record_expense(ledger, client, sheet_id, " ".join(text)))
    record = result.record
    console.print(
        f"[bold green]Expense {record.category} {money(record.amount)} recorded.[/bold green] ID: [cyan]{result.id}[/cyan]"
    )
    console.print(f"Balance this month: [bold]{money(result.balance.balance)}[/bold]")


@app.command()
def total(
    ctx: typer.Context,
    month: Optional[List[str]] = typer.Argument(None, help="Month, e.g. '03/25' or 'sep 2025'. Defaults to this month."),
):
    """
    Show income, expenses and balance of a month.
    """
    client, sheet_id = _target(ctx)
    target = run_safely(lambda: resolve_month(" ".join(month or []), ledger.clock()))
    explicit = bool(month)
    bal = run_safely(lambda: ledger.calculate_balance(
        client, sheet_id, partition=target.sheet_name, allow_create=not explicit
    ))

    if explicit and (not bal.partition_exists or bal.row_count == 0):
        console.print(f"[yellow]No transactions in {target.label}.[/yellow]")
        return

    table = Table(title=f"Report {target.label}")
    table.add_column("Income", justify="right", style="green")
    table.add_column("Expenses", justify="right", style="red")
    table.add_column("Balance", justify="right", style="bold magenta")
    table.add_row(money(bal.income), money(bal.expense), money(bal.balance))
    console.print(table)


@app.command()
def history(
    ctx: typer.Context,
    month: Optional[List[str]] = typer.Argument(None, help="Month, e.g. '03/25' or 'september 2025'. Defaults to this month."),
    limit: int = typer.Option(RECENT_LIMIT, "--limit", "-n", help="How many entries to show"),
):
    """
    List the most recent transactions of a month.
    """
    client, sheet_id = _target(ctx)
    target = run_safely(lambda: resolve_month(" ".join(month or []), ledger.clock()))
    rows = run_safely(lambda: ledger.list_recent(
        client, sheet_id, limit, partition=target.sheet_name, allow_create=False
    ))

    if not rows:
        console.print(f"[yellow]No transactions in {target.label}.[/yellow]")
        return

    table = Table(title=f"Last {len(rows)} transactions ({target.label})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Category")
    table.add_column("Amount", justify="right")
    table.add_column("Description")
    for r in rows:
        table.add_row(r.id, format_timestamp_for_display(r.timestamp), r.kind, r.category, money(r.amount), r.description)
    console.print(table)
    console.print("[dim]delete <id> and undo only work for the current month.[/dim]")


@app.command()
def delete(
    ctx: typer.Context,
    txn_id: str = typer.Argument(..., help="ID shown by the history command"),
):
    """
    Delete a transaction of the current month by ID.
    """
    client, sheet_id = _target(ctx)
    if not run_safely(lambda: ledger.delete_by_id(client, sheet_id, txn_id)):
        fail(f"ID {txn_id} not found in this month.", style="yellow")
    console.print(f"[bold green]Deleted transaction {txn_id}.[/bold green]")


@app.command()
def undo(ctx: typer.Context):
    """
    Delete the last transaction of the current month.
    """
    client, sheet_id = _target(ctx)
    if not run_safely(lambda: ledger.delete_last(client, sheet_id)):
        fail("No transactions to delete this month.", style="yellow")
    console.print("[bold green]Last transaction of this month deleted.[/bold green]")


@budget_app.command("set")
def budget_set(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Expense category"),
    amount: str = typer.Argument(..., help="Monthly budget, e.g. '1jt' or '500000'"),
):
    """
    Set the monthly budget of a category.
    """
    value = parse_amount(amount)
    if value is None or value < 0:
        fail("Budget amount is not valid.", style="yellow")
    client, sheet_id = _target(ctx)
    run_safely(lambda: ledger.set_budget(client, sheet_id, category, value))
    console.print(f"[bold green]Budget for {category} set to {money(value)}.[/bold green]")


@budget_app.command("show")
def budget_show(ctx: typer.Context):
    """
    Show budgets against this month's spending.
    """
    client, sheet_id = _target(ctx)
    lines = run_safely(lambda: ledger.get_budget_summary(client, sheet_id))
    if not lines:
        console.print("[yellow]No budgets yet. Set one with: budget set <category> <amount>[/yellow]")
        return

    table = Table(title="Budgets this month")
    table.add_column("Category", style="cyan")
    table.add_column("Budget", justify="right")
    table.add_column("Spent", justify="right")
    table.add_column("Remaining", justify="right", style="bold magenta")
    for line in lines:
        style = "red" if line.remaining < 0 else ""
        table.add_row(line.category, money(line.budget), money(line.spent), money(line.remaining), style=style)
    console.print(table)


if __name__ == "__main__":
    app()
