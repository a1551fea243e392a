import logging
import time
from typing import Any, Callable, Collection

from gspread.exceptions import APIError

from ledger.config import RETRY_ATTEMPTS, RETRY_BASE_DELAY, TRANSIENT_STATUSES
from ledger.errors import RemoteOperationError, error_message, error_status

logger = logging.getLogger(__name__)

# A 429 is rejected before the server acts on it, so even an append may be re-sent
REJECTED_STATUSES = {429}


def is_transient(exc: BaseException, statuses: Collection[int] = TRANSIENT_STATUSES) -> bool:
    """Rate limits and server-side errors are worth another attempt."""
    if not isinstance(exc, APIError):
        return False
    return error_status(exc) in statuses


class RetryExecutor:
    """
    Runs a single remote call with bounded exponential backoff.

    Only transient failures are retried (see is_transient). Anything else is
    re-raised untouched on the first occurrence. When every attempt failed
    transiently a RemoteOperationError chained to the last failure is raised.
    """

    def __init__(
        self,
        attempts: int = RETRY_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.base_delay = base_delay
        self.sleep = sleep

    def delay_for(self, attempt: int) -> float:
        # 0.4, 0.8, 1.6 ... for the default base
        return self.base_delay * (2 ** attempt)

    def run(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        return self._run(TRANSIENT_STATUSES, operation, args, kwargs)

    def run_non_idempotent(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Like run, but for calls that must not be repeated blindly (appends).

        A 5xx may arrive after the server already applied the write, so only
        outright rejections are retried. Other transient failures surface as
        RemoteOperationError on the first occurrence.
        """
        return self._run(REJECTED_STATUSES, operation, args, kwargs)

    def _run(self, statuses, operation, args, kwargs):
        name = getattr(operation, "__name__", repr(operation))
        for attempt in range(self.attempts):
            try:
                return operation(*args, **kwargs)
            except APIError as e:
                if not is_transient(e):
                    raise
                if not is_transient(e, statuses) or attempt == self.attempts - 1:
                    raise RemoteOperationError(
                        f"{name} failed after {attempt + 1} attempt(s): {error_message(e)}",
                        status=error_status(e),
                    ) from e
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed with status %s, retrying in %.1fs (attempt %d/%d)",
                    name, error_status(e), delay, attempt + 1, self.attempts,
                )
                self.sleep(delay)
