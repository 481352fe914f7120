"""Cost aggregation over billing records.

Records are grouped by a configurable set of dimensions plus a time bucket and
summed with `Decimal` arithmetic. Aggregation is split into accumulate / merge /
finalize so that partial results computed for separate date sub-ranges can be
combined: merging the partials of any partition of a range gives the same rows
as aggregating the whole range at once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from billsync.config import LABEL_DIMENSION_PREFIX, VALID_DIMENSIONS, VALID_TIME_BUCKETS
from billsync.exceptions import AggregationError
from billsync.types import AggregatedCostRow, BillingRecord

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, ...]

DIMENSION_TITLES = {
    "service": "Service",
    "sku": "SKU",
    "project": "Project",
}


def dimension_title(dimension: str) -> str:
    """Human readable column title for a dimension."""
    if dimension.startswith(LABEL_DIMENSION_PREFIX):
        return f"Label: {dimension[len(LABEL_DIMENSION_PREFIX):]}"
    return DIMENSION_TITLES.get(dimension, dimension)


@dataclass
class _Bucket:
    dimensions: Tuple[Tuple[str, str], ...]
    time_bucket: str
    currency: str
    total: Decimal
    count: int


class CostPartial:
    """Mutable accumulation state, keyed by dimension values and time bucket."""

    def __init__(self):
        self.buckets: Dict[GroupKey, _Bucket] = {}

    def __len__(self) -> int:
        return len(self.buckets)

    def add(self, key: GroupKey, dimensions, time_bucket: str, currency: str, amount: Decimal, count: int = 1):
        bucket = self.buckets.get(key)
        if bucket is None:
            self.buckets[key] = _Bucket(dimensions, time_bucket, currency, amount, count)
            return
        if bucket.currency != currency:
            raise AggregationError(
                f"Mixed currencies in group {key}: {bucket.currency} and {currency}"
            )
        bucket.total += amount
        bucket.count += count


def _to_decimal(value, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise AggregationError(f"Billing row has non-numeric {field_name}: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise AggregationError(
                f"Billing row has non-numeric {field_name}: {value!r}", cause=e
            )
    if not result.is_finite():
        raise AggregationError(f"Billing row has non-finite {field_name}: {value!r}")
    return result


class CostAggregator:
    """Group billing records into cost rows."""

    def __init__(
        self,
        dimensions: Sequence[str] = ("service", "project"),
        time_bucket: str = "month",
        include_credits: bool = True,
    ):
        """Initialize aggregator.

        Args:
            dimensions: Grouping fields: service, sku, project or label:<key>
            time_bucket: day, week, month or none
            include_credits: Add credit amounts to cost (net cost)

        Raises:
            ValueError: If a dimension or the time bucket is unknown
        """
        if not dimensions:
            raise ValueError("At least one dimension is required")
        for dimension in dimensions:
            if dimension not in VALID_DIMENSIONS and not (
                dimension.startswith(LABEL_DIMENSION_PREFIX)
                and len(dimension) > len(LABEL_DIMENSION_PREFIX)
            ):
                raise ValueError(f"Unknown dimension: {dimension!r}")
        if time_bucket not in VALID_TIME_BUCKETS:
            raise ValueError(f"Unknown time bucket: {time_bucket!r}")
        self.dimensions = tuple(dimensions)
        self.time_bucket = time_bucket
        self.include_credits = include_credits

    @property
    def dimension_titles(self) -> List[str]:
        return [dimension_title(d) for d in self.dimensions]

    def _dimension_value(self, record: BillingRecord, dimension: str) -> str:
        if dimension == "service":
            return record.service or ""
        if dimension == "sku":
            return record.sku or ""
        if dimension == "project":
            return record.project_id or ""
        return record.label(dimension[len(LABEL_DIMENSION_PREFIX):])

    def _bucket_for(self, usage_start: datetime) -> str:
        if self.time_bucket == "none":
            return ""
        if usage_start.tzinfo is not None:
            usage_start = usage_start.astimezone(timezone.utc)
        day = usage_start.date()
        if self.time_bucket == "day":
            return day.isoformat()
        if self.time_bucket == "week":
            return (day - timedelta(days=day.weekday())).isoformat()
        return day.strftime("%Y-%m")

    def accumulate(self, records: Iterable[BillingRecord], partial: Optional[CostPartial] = None) -> CostPartial:
        """Fold records into a partial result.

        Raises:
            AggregationError: On malformed rows or mixed currencies within a group
        """
        partial = partial if partial is not None else CostPartial()
        for record in records:
            if not isinstance(record.usage_start, datetime):
                raise AggregationError(
                    f"Billing row has no usage start time (service={record.service!r}, sku={record.sku!r})"
                )
            if not record.currency:
                raise AggregationError(
                    f"Billing row has no currency (service={record.service!r}, sku={record.sku!r})"
                )
            amount = _to_decimal(record.cost, "cost")
            if self.include_credits:
                amount += _to_decimal(record.credits, "credits")

            dimensions = tuple(
                (d, self._dimension_value(record, d)) for d in self.dimensions
            )
            time_bucket = self._bucket_for(record.usage_start)
            key = tuple(value for _, value in dimensions) + (time_bucket,)
            partial.add(key, dimensions, time_bucket, record.currency, amount)
        return partial

    def merge(self, partials: Iterable[CostPartial]) -> CostPartial:
        """Combine partial results computed over disjoint record sets."""
        merged = CostPartial()
        for partial in partials:
            for key, bucket in partial.buckets.items():
                merged.add(
                    key,
                    bucket.dimensions,
                    bucket.time_bucket,
                    bucket.currency,
                    bucket.total,
                    bucket.count,
                )
        return merged

    def finalize(self, partial: CostPartial) -> List[AggregatedCostRow]:
        """Emit rows by descending total cost, ties by key ascending."""
        rows = [
            AggregatedCostRow(
                dimensions=bucket.dimensions,
                time_bucket=bucket.time_bucket,
                total_cost=bucket.total,
                currency=bucket.currency,
                row_count=bucket.count,
            )
            for bucket in partial.buckets.values()
        ]
        rows.sort(key=lambda r: r.key)
        rows.sort(key=lambda r: r.total_cost, reverse=True)
        return rows

    def aggregate(self, records: Iterable[BillingRecord]) -> List[AggregatedCostRow]:
        """Aggregate records in one pass."""
        return self.finalize(self.accumulate(records))
