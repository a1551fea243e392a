import re

MISSING_RANGE_PATTERN = re.compile(r"unable to parse range", re.IGNORECASE)
DUPLICATE_SHEET_PATTERN = re.compile(r"already exists", re.IGNORECASE)


class LedgerError(Exception):
    """Base class for ledger failures."""


class RemoteOperationError(LedgerError):
    """A remote call kept failing after all retry attempts."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class InvalidInputError(LedgerError):
    """User input could not be turned into a ledger entry."""


class FutureDateError(LedgerError):
    """Entry is dated in a month that has not started yet."""


class NoIncomeError(LedgerError):
    """An expense was recorded before any income in the current month."""


def error_message(exc: BaseException) -> str:
    """Best readable message of a gspread/requests error."""
    error = getattr(exc, "error", None)
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if exc.args and isinstance(exc.args[0], dict) and exc.args[0].get("message"):
        return str(exc.args[0]["message"])
    return str(exc)


def error_status(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def is_missing_range(exc: BaseException) -> bool:
    """True when the API rejected a range because the tab does not exist."""
    return bool(MISSING_RANGE_PATTERN.search(error_message(exc)))


def is_duplicate_sheet(exc: BaseException) -> bool:
    """True when addSheet was refused because a tab with that name exists."""
    return bool(DUPLICATE_SHEET_PATTERN.search(error_message(exc)))
