"""Tests for the sync runner using in-memory reader and Sheets fakes."""

import threading
import time
from datetime import date
from decimal import Decimal

import pytest

from billsync.core import RunRegistry, SyncRunner
from billsync.exceptions import (
    AggregationError,
    QueryError,
    RunInProgressError,
    RunTimeoutError,
    SyncPermissionError,
)
from billsync.services.sheets import SheetsSyncWriter
from billsync.types import DateRange, RunState, SyncTarget

from tests.conftest import FakeReader, FakeSheetsService, http_error

TARGET = SyncTarget("1AbCdEfGhIjK", "Costs")
MARCH = DateRange(date(2026, 3, 1), date(2026, 3, 31))
HEADER = ["Service", "Project", "Time Bucket", "Total Cost", "Currency", "Row Count"]


def _runner(config, reader, service, registry=None):
    writer = SheetsSyncWriter(
        service,
        max_attempts=config.sync_max_attempts,
        backoff_initial=config.sync_backoff_initial,
        backoff_max=config.sync_backoff_max,
        sleep=lambda _: None,
    )
    return SyncRunner(config, reader, writer, registry=registry)


class TestSyncRunner:
    """Test end-to-end runs."""

    def test_run_writes_aggregated_month(self, app_config, march_records):
        service = FakeSheetsService()
        runner = _runner(app_config, FakeReader(march_records), service)

        record = runner.run(TARGET, MARCH)

        assert record.state == RunState.SUCCEEDED
        assert record.rows_written == 3
        assert record.details["updated_range"] == "'Costs'!A1:F4"
        assert service.grid() == [
            HEADER,
            ["Compute Engine", "proj-a", "2026-03", 313.1, "USD", 31],
            ["Compute Engine", "proj-b", "2026-03", 30.75, "USD", 15],
            ["Cloud Storage", "proj-a", "2026-03", 10.23, "USD", 31],
        ]
        assert runner.registry.get(TARGET).state == RunState.SUCCEEDED

    def test_fan_out_matches_sequential(self, app_config, march_records):
        reader = FakeReader(march_records)
        parallel = _runner(app_config, reader, FakeSheetsService())
        sequential_config = type(app_config)(**{**app_config.__dict__, "max_workers": 1, "fanout_days": 31})
        sequential = _runner(sequential_config, FakeReader(march_records), FakeSheetsService())

        assert parallel.collect_rows(MARCH) == sequential.collect_rows(MARCH)
        assert sorted(r.start for r, _ in reader.calls) == [date(2026, 3, d) for d in (1, 6, 11, 16, 21, 26, 31)]

    def test_project_filter_passed_to_reader(self, app_config, march_records):
        reader = FakeReader(march_records)
        runner = _runner(app_config, reader, FakeSheetsService())

        rows = runner.collect_rows(MARCH, project_ids=["proj-b"])

        assert [(dict(r.dimensions)["project"], r.total_cost) for r in rows] == [("proj-b", Decimal("30.75"))]
        assert all(project_ids == ["proj-b"] for _, project_ids in reader.calls)

    def test_empty_range_writes_header_only(self, app_config):
        service = FakeSheetsService()
        runner = _runner(app_config, FakeReader([]), service)

        record = runner.run(TARGET, DateRange(date(2026, 4, 1), date(2026, 4, 2)))

        assert record.state == RunState.SUCCEEDED
        assert record.rows_written == 0
        assert service.grid() == [HEADER]

    def test_rerun_is_idempotent(self, app_config, march_records):
        service = FakeSheetsService()
        runner = _runner(app_config, FakeReader(march_records), service)

        runner.run(TARGET, MARCH)
        first = [list(row) for row in service.grid()]
        runner.run(TARGET, MARCH)

        assert service.grid() == first

    def test_query_failure_marks_run_failed(self, app_config):
        def fail(date_range):
            raise QueryError(f"Billing query failed for {date_range}")

        service = FakeSheetsService()
        runner = _runner(app_config, FakeReader([], before_read=fail), service)

        with pytest.raises(QueryError):
            runner.run(TARGET, MARCH)

        record = runner.registry.get(TARGET)
        assert record.state == RunState.FAILED
        assert record.details["error_type"] == "QueryError"
        assert service.batch_bodies == []
        assert service.grid() == [["stale", "data"], ["old", 1.0]]

    def test_aggregation_failure_leaves_sheet_untouched(self, app_config, make_record):
        records = [make_record(currency="USD"), make_record(currency="EUR")]
        service = FakeSheetsService()
        runner = _runner(app_config, FakeReader(records), service)

        with pytest.raises(AggregationError):
            runner.run(TARGET, MARCH)

        assert service.batch_bodies == []
        assert runner.registry.get(TARGET).state == RunState.FAILED

    def test_sync_failure_releases_target(self, app_config, march_records):
        service = FakeSheetsService(errors=[http_error(403)])
        runner = _runner(app_config, FakeReader(march_records), service)

        with pytest.raises(SyncPermissionError):
            runner.run(TARGET, MARCH)
        assert runner.registry.get(TARGET).state == RunState.FAILED

        record = runner.run(TARGET, MARCH)
        assert record.state == RunState.SUCCEEDED

    def test_concurrent_run_for_same_target_rejected(self, app_config, march_records):
        started = threading.Event()
        release = threading.Event()

        def block(date_range):
            started.set()
            release.wait(5)

        service = FakeSheetsService()
        runner = _runner(app_config, FakeReader(march_records, before_read=block), service)
        results = []
        worker = threading.Thread(target=lambda: results.append(runner.run(TARGET, MARCH)))
        worker.start()
        try:
            assert started.wait(5)
            with pytest.raises(RunInProgressError):
                runner.run(TARGET, MARCH)
        finally:
            release.set()
            worker.join(5)

        assert results[0].state == RunState.SUCCEEDED
        assert len(service.batch_bodies) == 1

    def test_timeout_before_write(self, app_config, march_records):
        service = FakeSheetsService()
        runner = _runner(
            app_config,
            FakeReader(march_records, before_read=lambda _: time.sleep(0.1)),
            service,
        )

        with pytest.raises(RunTimeoutError):
            runner.run(TARGET, MARCH, deadline_seconds=0.05)

        assert service.batch_bodies == []
        assert service.grid() == [["stale", "data"], ["old", 1.0]]
        assert runner.registry.get(TARGET).state == RunState.FAILED

    def test_shared_registry_blocks_across_runners(self, app_config, march_records):
        registry = RunRegistry()
        registry.try_start(TARGET)
        runner = _runner(app_config, FakeReader(march_records), FakeSheetsService(), registry=registry)

        with pytest.raises(RunInProgressError):
            runner.run(TARGET, MARCH)
