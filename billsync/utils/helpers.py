"""Helper functions for dates and deadlines."""

import time
from datetime import date, datetime, timezone
from typing import Optional

from billsync.types import DateRange


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def get_month_to_date_range(today: Optional[date] = None) -> DateRange:
    """Get range from the first day of the current month through today (UTC).

    Args:
        today: Override for the current date (optional)

    Returns:
        DateRange
    """
    today = today or utc_today()
    return DateRange(today.replace(day=1), today)


def parse_date(value: str) -> date:
    """Parse an ISO date (YYYY-MM-DD) or compact date (YYYYMMDD).

    Raises:
        ValueError: If the value is not a valid date
    """
    value = value.strip()
    if len(value) == 8 and value.isdigit():
        return datetime.strptime(value, "%Y%m%d").date()
    return date.fromisoformat(value)


def resolve_date_range(
    start: Optional[str] = None,
    end: Optional[str] = None,
    today: Optional[date] = None,
) -> DateRange:
    """Build a DateRange from optional start/end strings.

    Missing start defaults to the first day of the end date's month, missing end to today.

    Raises:
        ValueError: On unparseable dates or a reversed range
    """
    end_date = parse_date(end) if end else (today or utc_today())
    start_date = parse_date(start) if start else end_date.replace(day=1)
    return DateRange(start_date, end_date)


class Deadline:
    """Absolute point in monotonic time after which a run must stop."""

    def __init__(self, seconds: Optional[float], clock=time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires_at = None if seconds is None else clock() + seconds

    def remaining(self) -> Optional[float]:
        """Seconds left, floored at 0. None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0
