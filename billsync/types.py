"""Domain types shared across billsync."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta

SPREADSHEET_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class BillingRecord:
    """One cost line from the billing export."""
    service: str
    sku: str
    usage_start: Optional[datetime]
    usage_end: Optional[datetime]
    cost: Decimal
    currency: str
    project_id: Optional[str]
    labels: Tuple[Tuple[str, str], ...] = ()
    credits: Decimal = Decimal("0")

    def label(self, key: str) -> str:
        """Return the value of label `key`, or an empty string."""
        for label_key, value in self.labels:
            if label_key == key:
                return value
        return ""


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar dates."""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(
                f"start date {self.start.isoformat()} is after end date {self.end.isoformat()}"
            )

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def split(self, days: int) -> List["DateRange"]:
        """Split into contiguous sub-ranges of at most `days` days."""
        if days <= 0:
            raise ValueError("days must be positive")
        parts = []
        cursor = self.start
        while cursor <= self.end:
            part_end = min(cursor + timedelta(days=days - 1), self.end)
            parts.append(DateRange(cursor, part_end))
            cursor = part_end + timedelta(days=1)
        return parts

    def months(self) -> List["DateRange"]:
        """Split on calendar-month boundaries."""
        parts = []
        cursor = self.start
        while cursor <= self.end:
            next_month = cursor.replace(day=1) + relativedelta(months=1)
            part_end = min(next_month - timedelta(days=1), self.end)
            parts.append(DateRange(cursor, part_end))
            cursor = part_end + timedelta(days=1)
        return parts

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class AggregatedCostRow:
    """Cost total for one combination of dimension values and time bucket."""
    dimensions: Tuple[Tuple[str, str], ...]
    time_bucket: str
    total_cost: Decimal
    currency: str
    row_count: int

    @property
    def key(self) -> Tuple[str, ...]:
        return tuple(value for _, value in self.dimensions) + (self.time_bucket,)


@dataclass(frozen=True)
class SyncTarget:
    """A tab of an external spreadsheet. Only used for addressing."""
    spreadsheet_id: str
    sheet_name: str = "Costs"

    def __post_init__(self):
        if not self.spreadsheet_id or not SPREADSHEET_ID_PATTERN.match(self.spreadsheet_id):
            raise ValueError(f"Invalid spreadsheet id: {self.spreadsheet_id!r}")
        if not self.sheet_name or not self.sheet_name.strip():
            raise ValueError("sheet_name must be a non-empty string")

    def __str__(self) -> str:
        return f"{self.spreadsheet_id}/{self.sheet_name}"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of a sheet replacement."""
    target: SyncTarget
    rows_written: int
    updated_range: str


@dataclass
class RunRecord:
    """State of the latest run for a target."""
    target: SyncTarget
    state: RunState = RunState.IDLE
    run_id: Optional[str] = None
    date_range: Optional[DateRange] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    rows_written: int = 0
    error: Optional[str] = None
    details: dict = field(default_factory=dict)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
