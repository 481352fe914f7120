"""Custom exceptions for CLI with exit codes."""

from billsync.cli.constants import (
    EX_BIGQUERY,
    EX_CONFIG,
    EX_CONFLICT,
    EX_DATAERR,
    EX_GCP_API,
    EX_GCP_NOT_FOUND,
    EX_GCP_PERMISSION,
    EX_GCP_QUOTA,
    EX_GENERAL,
    EX_TEMPFAIL,
    EX_USAGE,
)
from billsync.exceptions import (
    AggregationError,
    BillSyncError,
    ConfigError,
    InvalidFilterError,
    QueryError,
    RateLimitedError,
    RunInProgressError,
    RunTimeoutError,
    SyncError,
    SyncNotFoundError,
    SyncPermissionError,
)


class CLIException(Exception):
    """Base exception for CLI errors with exit codes."""
    
    def __init__(self, message: str, exit_code: int = EX_GENERAL):
        super().__init__(message)
        self.exit_code = exit_code
        self.message = message


# Most specific classes first
_EXIT_CODES = (
    (ConfigError, EX_CONFIG),
    (InvalidFilterError, EX_USAGE),
    (QueryError, EX_BIGQUERY),
    (AggregationError, EX_DATAERR),
    (RateLimitedError, EX_GCP_QUOTA),
    (SyncPermissionError, EX_GCP_PERMISSION),
    (SyncNotFoundError, EX_GCP_NOT_FOUND),
    (SyncError, EX_GCP_API),
    (RunTimeoutError, EX_TEMPFAIL),
    (RunInProgressError, EX_CONFLICT),
)


def exit_code_for(error: BillSyncError) -> int:
    """Map a billsync error to a CLI exit code."""
    for error_type, code in _EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return EX_GENERAL
