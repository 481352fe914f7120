"""Sync runner: read billing export, aggregate, overwrite the sheet."""

import concurrent.futures
import logging
from typing import List, Optional, Sequence

from billsync.config import AppConfig
from billsync.core.registry import RunRegistry
from billsync.exceptions import BillSyncError, QueryError, RunTimeoutError
from billsync.services.billing import BillingDataReader, CostAggregator, CostPartial
from billsync.services.sheets import SheetsSyncWriter
from billsync.types import AggregatedCostRow, DateRange, RunRecord, SyncTarget
from billsync.utils.helpers import Deadline, get_month_to_date_range

logger = logging.getLogger(__name__)


class SyncRunner:
    """Orchestrates one aggregation and sync run per target.

    Example:
        ```python
        runner = SyncRunner.from_config(load_config())
        record = runner.run(SyncTarget("1AbC..."))
        ```
    """

    def __init__(
        self,
        config: AppConfig,
        reader: BillingDataReader,
        writer: SheetsSyncWriter,
        registry: Optional[RunRegistry] = None,
        aggregator: Optional[CostAggregator] = None,
    ):
        self.config = config
        self.reader = reader
        self.writer = writer
        self.registry = registry or RunRegistry()
        self.aggregator = aggregator or CostAggregator(
            dimensions=config.dimensions,
            time_bucket=config.time_bucket,
            include_credits=config.include_credits,
        )

    @classmethod
    def from_config(cls, config: AppConfig, credentials=None) -> "SyncRunner":
        """Build a runner with real BigQuery and Sheets clients."""
        # Lazy import to avoid loading heavy BigQuery SDK at module import time
        from google.cloud import bigquery
        from billsync.services.base import get_default_credentials
        from billsync.services.sheets import build_sheets_service

        credentials = get_default_credentials(credentials, config.credentials_path)
        client = bigquery.Client(
            project=config.project_id,
            credentials=credentials,
            location=config.location,
        )
        reader = BillingDataReader(
            client,
            billing_dataset=f"{config.project_id}.{config.dataset_id}",
            billing_table=config.table_id,
            location=config.location,
            page_size=config.page_size,
        )
        writer = SheetsSyncWriter(
            build_sheets_service(credentials, timeout=config.sheets_timeout_seconds),
            max_attempts=config.sync_max_attempts,
            backoff_initial=config.sync_backoff_initial,
            backoff_max=config.sync_backoff_max,
        )
        return cls(config, reader, writer)

    def run(
        self,
        target: SyncTarget,
        date_range: Optional[DateRange] = None,
        project_ids: Optional[Sequence[str]] = None,
        deadline_seconds: Optional[float] = None,
    ) -> RunRecord:
        """Run one aggregation and sync for a target.

        Args:
            target: Spreadsheet tab to overwrite
            date_range: Usage dates to aggregate (defaults to month to date)
            project_ids: Restrict to these projects (optional)
            deadline_seconds: Run deadline (defaults to config.run_timeout_seconds)

        Returns:
            The finished RunRecord

        Raises:
            RunInProgressError: If a run for the target is in progress
            QueryError, AggregationError, SyncError, RunTimeoutError: Run failure.
                The target is released and its record marked FAILED first.
        """
        date_range = date_range or get_month_to_date_range()
        record = self.registry.try_start(target, date_range)
        deadline = Deadline(deadline_seconds or self.config.run_timeout_seconds)
        log_extra = {"spreadsheet_id": target.spreadsheet_id, "run_id": record.run_id}
        logger.info(f"Starting sync of {date_range} to {target}", extra=log_extra)

        try:
            rows = self.collect_rows(date_range, project_ids, deadline)
            if deadline.expired:
                raise RunTimeoutError(f"Run deadline expired after aggregating {date_range}")
            result = self.writer.replace(
                target, rows, self.aggregator.dimension_titles, deadline=deadline
            )
        except BillSyncError as e:
            logger.error(f"Sync to {target} failed: {e.message}", exc_info=True, extra=log_extra)
            self.registry.finish(
                target, record.run_id, succeeded=False,
                error=e.message, details={"error_type": type(e).__name__},
            )
            raise
        except Exception as e:
            logger.error(f"Unexpected error syncing to {target}: {str(e)}", exc_info=True, extra=log_extra)
            self.registry.finish(
                target, record.run_id, succeeded=False,
                error=str(e), details={"error_type": type(e).__name__},
            )
            raise

        finished = self.registry.finish(
            target,
            record.run_id,
            succeeded=True,
            rows_written=result.rows_written,
            details={"updated_range": result.updated_range},
        )
        logger.info(
            f"Sync to {target} succeeded: {result.rows_written} rows in {finished.duration_seconds:.1f}s",
            extra=log_extra,
        )
        return finished

    def collect_rows(
        self,
        date_range: DateRange,
        project_ids: Optional[Sequence[str]] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[AggregatedCostRow]:
        """Read and aggregate a date range, fanning out over sub-ranges.

        Raises:
            QueryError, AggregationError: From the reader or aggregator
            RunTimeoutError: If the deadline expires while reading
        """
        deadline = deadline or Deadline(None)
        parts = date_range.split(self.config.fanout_days)
        workers = min(self.config.max_workers, len(parts))

        if workers <= 1:
            partials = [self._read_part(part, project_ids, deadline) for part in parts]
        else:
            partials = self._read_parallel(parts, project_ids, deadline, workers)

        return self.aggregator.finalize(self.aggregator.merge(partials))

    def _read_part(
        self,
        part: DateRange,
        project_ids: Optional[Sequence[str]],
        deadline: Deadline,
    ) -> CostPartial:
        if deadline.expired:
            raise RunTimeoutError(f"Run deadline expired before reading {part}")
        try:
            records = self.reader.read_records(part, project_ids=project_ids, timeout=deadline.remaining())
            return self.aggregator.accumulate(records)
        except QueryError as e:
            if deadline.expired:
                raise RunTimeoutError(f"Run deadline expired while reading {part}", cause=e)
            raise

    def _read_parallel(
        self,
        parts: List[DateRange],
        project_ids: Optional[Sequence[str]],
        deadline: Deadline,
        workers: int,
    ) -> List[CostPartial]:
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="billsync-read"
        )
        try:
            futures = [
                executor.submit(self._read_part, part, project_ids, deadline)
                for part in parts
            ]
            done, not_done = concurrent.futures.wait(
                futures,
                timeout=deadline.remaining(),
                return_when=concurrent.futures.FIRST_EXCEPTION,
            )
            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()
            if not_done:
                raise RunTimeoutError(
                    f"Run deadline expired with {len(not_done)} of {len(parts)} date ranges unread"
                )
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
