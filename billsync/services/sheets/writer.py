"""Google Sheets sync writer.

Replaces the contents of one spreadsheet tab with aggregated cost rows. The
whole replacement is a single `spreadsheets.batchUpdate` call: an `updateCells`
request over the entire tab writes the new values and clears every other cell,
and a missing tab is created by an `addSheet` request in the same batch. The
tab's grid is resized to the written area first, since `updateCells` cannot
extend it. The
Sheets API applies a batch atomically, so readers see either the old contents
or the new ones.
"""

import logging
import time
import zlib
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

import httplib2
from google.auth.exceptions import TransportError
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from billsync.exceptions import (
    RateLimitedError,
    RunTimeoutError,
    SyncError,
    SyncNotFoundError,
    SyncPermissionError,
    SyncUnavailableError,
)
from billsync.types import AggregatedCostRow, SyncResult, SyncTarget
from billsync.utils.helpers import Deadline

logger = logging.getLogger(__name__)

TRAILING_COLUMNS = ["Time Bucket", "Total Cost", "Currency", "Row Count"]
CENTS = Decimal("0.01")
RETRYABLE_STATUSES = (500, 502, 503, 504)
DEFAULT_HTTP_TIMEOUT = 60.0


def build_sheets_service(credentials, timeout: Optional[float] = DEFAULT_HTTP_TIMEOUT) -> Resource:
    """Build a Sheets v4 Discovery API client.

    Args:
        credentials: Google credentials with the spreadsheets scope
        timeout: Socket timeout in seconds for each API request
    """
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("sheets", "v4", http=http, cache_discovery=False)


def build_values(rows: Sequence[AggregatedCostRow], dimension_titles: Sequence[str]) -> List[List[Any]]:
    """Lay out rows as a header plus one line per aggregated row."""
    values: List[List[Any]] = [list(dimension_titles) + TRAILING_COLUMNS]
    for row in rows:
        values.append(
            [value for _, value in row.dimensions]
            + [
                row.time_bucket,
                row.total_cost.quantize(CENTS, rounding=ROUND_HALF_UP),
                row.currency,
                row.row_count,
            ]
        )
    return values


def _cell(value: Any) -> Dict[str, Any]:
    if isinstance(value, Decimal):
        return {"userEnteredValue": {"numberValue": float(value)}}
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return {"userEnteredValue": {"numberValue": value}}
    return {"userEnteredValue": {"stringValue": "" if value is None else str(value)}}


def _column_letter(index: int) -> str:
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _map_http_error(e: HttpError, target: SyncTarget) -> SyncError:
    status = e.resp.status
    if status == 429:
        return RateLimitedError(f"Rate limited writing {target}", cause=e, http_status=status)
    if status in RETRYABLE_STATUSES:
        return SyncUnavailableError(f"Sheets API unavailable writing {target} (HTTP {status})", cause=e, http_status=status)
    if status == 403:
        return SyncPermissionError(f"Permission denied writing {target}", cause=e, http_status=status)
    if status == 404:
        return SyncNotFoundError(f"Spreadsheet {target.spreadsheet_id} not found", cause=e, http_status=status)
    return SyncError(f"HTTP error writing {target} (HTTP {status}): {e}", cause=e, http_status=status)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, SyncError) and error.retryable


class SheetsSyncWriter:
    """Overwrite a spreadsheet tab with aggregated cost rows.

    Example:
        ```python
        writer = SheetsSyncWriter(build_sheets_service(credentials))
        writer.replace(SyncTarget("1AbC..."), rows, ["Service", "Project"])
        ```
    """

    def __init__(
        self,
        service: Resource,
        max_attempts: int = 5,
        backoff_initial: float = 1.0,
        backoff_max: float = 30.0,
        sleep=time.sleep,
    ):
        """Initialize writer.

        Args:
            service: Sheets v4 Discovery API client
            max_attempts: Attempts per replace, including the first, for retryable errors
            backoff_initial: First backoff delay in seconds (doubles per retry)
            backoff_max: Backoff ceiling in seconds
            sleep: Sleep function used between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.service = service
        self.max_attempts = max_attempts
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self._sleep = sleep

    def replace(
        self,
        target: SyncTarget,
        rows: Sequence[AggregatedCostRow],
        dimension_titles: Sequence[str],
        deadline: Optional[Deadline] = None,
    ) -> SyncResult:
        """Replace the target tab's contents.

        Args:
            target: Spreadsheet and tab to write
            rows: Aggregated rows, already ordered
            dimension_titles: Column titles for the dimension values
            deadline: Run deadline; no attempt starts after it expires

        Returns:
            SyncResult

        Raises:
            SyncError: On write failure, after retries for retryable errors
            RunTimeoutError: If the deadline expired before an attempt or while backing off
        """
        values = build_values(rows, dimension_titles)
        backoff = wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max)

        def wait(retry_state) -> float:
            # Never sleep past the run deadline
            delay = backoff(retry_state)
            remaining = deadline.remaining() if deadline is not None else None
            return delay if remaining is None else min(delay, remaining)

        def deadline_expired(retry_state) -> bool:
            return deadline is not None and deadline.expired

        retrying = Retrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_attempts) | deadline_expired,
            wait=wait,
            sleep=self._sleep,
            before_sleep=lambda state: self._log_retry(target, state),
            reraise=True,
        )
        try:
            return retrying(self._replace_once, target, values, deadline)
        except SyncError as e:
            if e.retryable and deadline is not None and deadline.expired:
                raise RunTimeoutError(f"Run deadline expired while retrying write to {target}", cause=e)
            raise

    def _log_retry(self, target: SyncTarget, retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Retrying write to {target} after attempt {retry_state.attempt_number}: {error}",
            extra={"spreadsheet_id": target.spreadsheet_id, "attempt": retry_state.attempt_number},
        )

    def _replace_once(
        self,
        target: SyncTarget,
        values: List[List[Any]],
        deadline: Optional[Deadline],
    ) -> SyncResult:
        if deadline is not None and deadline.expired:
            raise RunTimeoutError(f"Run deadline expired before writing {target}")
        width = len(values[0])
        try:
            sheet_id, requests = self._resolve_sheet(target, len(values), width)
            requests.append(
                {
                    "updateCells": {
                        "range": {"sheetId": sheet_id},
                        "rows": [{"values": [_cell(v) for v in line]} for line in values],
                        "fields": "userEnteredValue",
                    }
                }
            )
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=target.spreadsheet_id,
                body={"requests": requests},
            ).execute()
        except HttpError as e:
            raise _map_http_error(e, target)
        except (OSError, TransportError) as e:
            raise SyncUnavailableError(f"Connection error writing {target}: {e}", cause=e)

        updated_range = f"'{target.sheet_name}'!A1:{_column_letter(width - 1)}{len(values)}"
        logger.info(
            f"Wrote {len(values) - 1} rows to {target}",
            extra={"spreadsheet_id": target.spreadsheet_id, "rows": len(values) - 1},
        )
        return SyncResult(target=target, rows_written=len(values) - 1, updated_range=updated_range)

    def _resolve_sheet(self, target: SyncTarget, row_count: int, column_count: int):
        """Find the tab's sheetId, or plan its creation, and size its grid.

        `updateCells` cannot write outside the grid, so the grid is set to exactly
        the written area. Shrinking an existing tab also drops stale rows and
        columns beyond it.

        Returns:
            Tuple of (sheet_id, requests) where requests holds either an addSheet
            request for a new tab or an updateSheetProperties resize.
        """
        grid = {"rowCount": row_count, "columnCount": column_count}
        spreadsheet = self.service.spreadsheets().get(
            spreadsheetId=target.spreadsheet_id,
            fields="sheets.properties(sheetId,title)",
        ).execute()
        existing_ids = set()
        for sheet in spreadsheet.get("sheets", []):
            properties = sheet.get("properties", {})
            existing_ids.add(properties.get("sheetId"))
            if properties.get("title") == target.sheet_name:
                sheet_id = properties.get("sheetId")
                return sheet_id, [
                    {
                        "updateSheetProperties": {
                            "properties": {"sheetId": sheet_id, "gridProperties": grid},
                            "fields": "gridProperties(rowCount,columnCount)",
                        }
                    }
                ]

        sheet_id = zlib.crc32(target.sheet_name.encode("utf-8")) & 0x7FFFFFFF
        while sheet_id in existing_ids:
            sheet_id = (sheet_id + 1) & 0x7FFFFFFF
        logger.info(f"Creating tab '{target.sheet_name}' in {target.spreadsheet_id}")
        return sheet_id, [
            {
                "addSheet": {
                    "properties": {
                        "sheetId": sheet_id,
                        "title": target.sheet_name,
                        "gridProperties": grid,
                    }
                }
            }
        ]
