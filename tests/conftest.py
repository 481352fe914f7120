"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- app_config: AppConfig with fast retry settings
- make_record: Factory for BillingRecord objects
- FakeReader: In-memory stand-in for BillingDataReader
- FakeSheetsService: In-memory stand-in for the Sheets v4 Discovery client
"""

import threading
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from googleapiclient.errors import HttpError

from billsync.config import AppConfig
from billsync.types import BillingRecord


def http_error(status: int, reason: str = "error") -> HttpError:
    """Build a googleapiclient HttpError with the given status."""
    return HttpError(SimpleNamespace(status=status, reason=reason), b'{"error": {"message": "test"}}')


class FakeReader:
    """Serves records whose usage start date falls in the requested range."""

    def __init__(self, records=(), before_read=None):
        self.records = list(records)
        self.calls = []
        self.before_read = before_read
        self._lock = threading.Lock()

    def read_records(self, date_range, project_ids=None, timeout=None):
        with self._lock:
            self.calls.append((date_range, project_ids))
        if self.before_read is not None:
            self.before_read(date_range)
        return iter([
            r for r in self.records
            if date_range.start <= r.usage_start.date() <= date_range.end
            and (not project_ids or r.project_id in project_ids)
        ])


class _Call:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeSheetsService:
    """Applies batchUpdate requests to in-memory tabs.

    `errors` is a list of exceptions (or None for success) consumed one per batchUpdate.
    Like the real API, `updateCells` outside a tab's grid fails with HTTP 400 and
    new tabs get a 1000x26 grid unless `gridProperties` says otherwise.
    """

    DEFAULT_GRID = {"rowCount": 1000, "columnCount": 26}

    def __init__(self, tabs=None, errors=None):
        self.tabs = {}
        for index, title in enumerate(tabs if tabs is not None else ["Costs"]):
            self.tabs[title] = {
                "sheetId": index,
                "grid": [["stale", "data"], ["old", 1.0]],
                "gridProperties": dict(self.DEFAULT_GRID),
            }
        self.errors = list(errors or [])
        self.batch_bodies = []
        self.get_calls = 0

    def spreadsheets(self):
        return self

    def get(self, spreadsheetId, fields=None):
        def run():
            self.get_calls += 1
            return {
                "sheets": [
                    {"properties": {"sheetId": tab["sheetId"], "title": title}}
                    for title, tab in self.tabs.items()
                ]
            }
        return _Call(run)

    def batchUpdate(self, spreadsheetId, body):
        return _Call(lambda: self._apply(body))

    def _apply(self, body):
        self.batch_bodies.append(body)
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        # Apply to copies so a failing request leaves every tab untouched
        tabs = {title: dict(tab, gridProperties=dict(tab["gridProperties"])) for title, tab in self.tabs.items()}
        for request in body["requests"]:
            if "addSheet" in request:
                properties = request["addSheet"]["properties"]
                tabs[properties["title"]] = {
                    "sheetId": properties["sheetId"],
                    "grid": [],
                    "gridProperties": dict(self.DEFAULT_GRID, **properties.get("gridProperties", {})),
                }
            elif "updateSheetProperties" in request:
                properties = request["updateSheetProperties"]["properties"]
                tab = self._tab_by_id(tabs, properties["sheetId"])
                tab["gridProperties"].update(properties.get("gridProperties", {}))
            elif "updateCells" in request:
                update = request["updateCells"]
                tab = self._tab_by_id(tabs, update["range"]["sheetId"])
                rows = update["rows"]
                grid = tab["gridProperties"]
                if len(rows) > grid["rowCount"] or any(len(r["values"]) > grid["columnCount"] for r in rows):
                    raise http_error(400, "exceeds grid limits")
                tab["grid"] = [
                    [next(iter(cell["userEnteredValue"].values())) for cell in row["values"]]
                    for row in rows
                ]
        self.tabs = tabs
        return {}

    @staticmethod
    def _tab_by_id(tabs, sheet_id):
        for tab in tabs.values():
            if tab["sheetId"] == sheet_id:
                return tab
        raise KeyError(sheet_id)

    def grid(self, title="Costs"):
        return self.tabs[title]["grid"]

    def grid_properties(self, title="Costs"):
        return self.tabs[title]["gridProperties"]


@pytest.fixture
def app_config() -> AppConfig:
    """Return a configuration with fast retries and small fan-out."""
    return AppConfig(
        project_id="billing-project",
        dataset_id="billing_export",
        table_id="gcp_billing_export_v1_0148A9_A6130F_E0294F",
        dimensions=("service", "project"),
        time_bucket="month",
        max_workers=3,
        fanout_days=5,
        run_timeout_seconds=30,
        sync_max_attempts=3,
        sync_backoff_initial=0.0,
        sync_backoff_max=0.0,
    )


@pytest.fixture
def make_record():
    """Return a factory for billing records."""
    def _make(
        service="Compute Engine",
        cost="1.00",
        day=date(2026, 3, 1),
        project_id="proj-a",
        sku="N2 Core",
        currency="USD",
        credits="0",
        labels=(),
    ) -> BillingRecord:
        start = datetime(day.year, day.month, day.day, 6, 0, tzinfo=timezone.utc)
        return BillingRecord(
            service=service,
            sku=sku,
            usage_start=start,
            usage_end=start.replace(hour=7),
            cost=Decimal(cost) if isinstance(cost, str) else cost,
            currency=currency,
            project_id=project_id,
            labels=tuple(labels),
            credits=Decimal(credits),
        )
    return _make


@pytest.fixture
def march_records(make_record):
    """A month of costs across two services and two projects."""
    records = []
    for day in range(1, 32):
        records.append(make_record("Compute Engine", "10.10", date(2026, 3, day), "proj-a"))
        records.append(make_record("Cloud Storage", "0.33", date(2026, 3, day), "proj-a"))
        if day % 2 == 0:
            records.append(make_record("Compute Engine", "2.05", date(2026, 3, day), "proj-b"))
    return records
