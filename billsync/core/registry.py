"""Per-target run registry.

Tracks the latest run for each sync target and guarantees that at most one
run per target is in the RUNNING state at any time.
"""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional

from billsync.exceptions import RunInProgressError
from billsync.types import DateRange, RunRecord, RunState, SyncTarget

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _copy(record: RunRecord) -> RunRecord:
    return replace(record, details=dict(record.details))


class RunRegistry:
    """Thread-safe map of sync target to its latest RunRecord."""

    def __init__(self, clock=_now):
        self._lock = threading.Lock()
        self._records: Dict[SyncTarget, RunRecord] = {}
        self._clock = clock

    def get(self, target: SyncTarget) -> RunRecord:
        """Latest record for a target, IDLE if it never ran."""
        with self._lock:
            record = self._records.get(target)
            return _copy(record) if record else RunRecord(target=target)

    def try_start(self, target: SyncTarget, date_range: Optional[DateRange] = None) -> RunRecord:
        """Move a target to RUNNING.

        Raises:
            RunInProgressError: If the target already has a run in progress
        """
        with self._lock:
            current = self._records.get(target)
            if current is not None and current.state == RunState.RUNNING:
                raise RunInProgressError(
                    f"A run for {target} is already in progress (run {current.run_id})"
                )
            record = RunRecord(
                target=target,
                state=RunState.RUNNING,
                run_id=uuid.uuid4().hex,
                date_range=date_range,
                started_at=self._clock(),
            )
            self._records[target] = record
            return _copy(record)

    def finish(
        self,
        target: SyncTarget,
        run_id: str,
        succeeded: bool,
        rows_written: int = 0,
        error: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> RunRecord:
        """Move a running target to SUCCEEDED or FAILED.

        Raises:
            ValueError: If `run_id` is not the target's current run
        """
        with self._lock:
            record = self._records.get(target)
            if record is None or record.run_id != run_id:
                raise ValueError(f"Run {run_id} is not the current run for {target}")
            record.state = RunState.SUCCEEDED if succeeded else RunState.FAILED
            record.finished_at = self._clock()
            record.rows_written = rows_written
            record.error = error
            if details:
                record.details.update(details)
            return _copy(record)
