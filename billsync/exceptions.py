"""Exception hierarchy for billsync.

Every error carries the HTTP status the API layer answers with.
"""

from typing import Optional


class BillSyncError(Exception):
    """Base exception for billsync errors."""

    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigError(BillSyncError):
    """Invalid or missing configuration."""


class QueryError(BillSyncError):
    """Billing export could not be read."""


class InvalidFilterError(QueryError):
    """Date range or project filter is malformed."""

    status_code = 400


class AggregationError(BillSyncError):
    """Billing rows could not be aggregated."""


class SyncError(BillSyncError):
    """Spreadsheet write failed."""

    status_code = 502
    retryable = False

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message, cause)
        self.http_status = http_status


class RateLimitedError(SyncError):
    """Sheets API quota exceeded (HTTP 429)."""

    retryable = True


class SyncUnavailableError(SyncError):
    """Sheets API temporarily unavailable (HTTP 5xx)."""

    retryable = True


class SyncPermissionError(SyncError):
    """Service account cannot edit the spreadsheet (HTTP 403)."""


class SyncNotFoundError(SyncError):
    """Spreadsheet does not exist (HTTP 404)."""


class RunInProgressError(BillSyncError):
    """A run for the same target is already in progress."""

    status_code = 409


class RunTimeoutError(BillSyncError):
    """Run exceeded its deadline before writing."""

    status_code = 504
