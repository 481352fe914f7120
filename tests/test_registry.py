"""Unit tests for the run registry."""

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from billsync.core import RunRegistry
from billsync.exceptions import RunInProgressError
from billsync.types import DateRange, RunState, SyncTarget

TARGET = SyncTarget("1AbCdEfGhIjK", "Costs")


def _clock():
    times = iter(datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc) + timedelta(seconds=i) for i in range(100))
    return lambda: next(times)


class TestRunRegistry:
    """Test run state transitions."""

    def test_unknown_target_is_idle(self):
        record = RunRegistry().get(TARGET)

        assert record.state == RunState.IDLE
        assert record.run_id is None

    def test_start_and_finish(self):
        registry = RunRegistry(clock=_clock())
        march = DateRange(date(2026, 3, 1), date(2026, 3, 5))

        started = registry.try_start(TARGET, march)
        assert registry.get(TARGET).state == RunState.RUNNING
        assert registry.get(TARGET).run_id == started.run_id

        finished = registry.finish(TARGET, started.run_id, succeeded=True, rows_written=4)

        assert finished.state == RunState.SUCCEEDED
        assert finished.rows_written == 4
        assert finished.date_range == march
        assert finished.duration_seconds == 1.0
        assert registry.get(TARGET).state == RunState.SUCCEEDED

    def test_second_start_rejected_while_running(self):
        registry = RunRegistry()
        registry.try_start(TARGET)

        with pytest.raises(RunInProgressError):
            registry.try_start(TARGET)

    def test_other_targets_are_independent(self):
        registry = RunRegistry()
        registry.try_start(TARGET)

        other = registry.try_start(SyncTarget("1AbCdEfGhIjK", "Daily"))

        assert other.state == RunState.RUNNING

    def test_target_released_after_failure(self):
        registry = RunRegistry()
        first = registry.try_start(TARGET)
        registry.finish(TARGET, first.run_id, succeeded=False, error="boom")

        assert registry.get(TARGET).error == "boom"
        second = registry.try_start(TARGET)
        assert second.run_id != first.run_id
        assert registry.get(TARGET).error is None

    def test_finish_with_stale_run_id(self):
        registry = RunRegistry()
        registry.try_start(TARGET)

        with pytest.raises(ValueError):
            registry.finish(TARGET, "not-the-run", succeeded=True)

    def test_returned_records_are_copies(self):
        registry = RunRegistry()
        record = registry.try_start(TARGET)
        record.state = RunState.FAILED
        record.details["mutated"] = True

        assert registry.get(TARGET).state == RunState.RUNNING
        assert registry.get(TARGET).details == {}

    def test_concurrent_starts_admit_exactly_one(self):
        registry = RunRegistry()
        barrier = threading.Barrier(8)
        outcomes = []
        lock = threading.Lock()

        def start():
            barrier.wait()
            try:
                registry.try_start(TARGET)
                result = "started"
            except RunInProgressError:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=start) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["rejected"] * 7 + ["started"]
