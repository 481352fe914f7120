"""Billing data reader for the BigQuery billing export."""

import concurrent.futures
import logging
from decimal import Decimal
from typing import Any, Iterator, Optional, Sequence

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import TransportError
from google.cloud import bigquery

from billsync.exceptions import InvalidFilterError, QueryError
from billsync.services.billing.base import BaseBillingService
from billsync.types import BillingRecord, DateRange

logger = logging.getLogger(__name__)


class BillingDataReader(BaseBillingService):
    """Read raw cost lines from BigQuery billing export."""

    def __init__(
        self,
        client: bigquery.Client,
        billing_dataset: str,
        billing_table: str,
        location: str = "US",
        page_size: int = 10000,
    ):
        super().__init__(client, billing_dataset, billing_table, location)
        self.page_size = page_size

    def _build_query(self, project_ids: Optional[Sequence[str]] = None) -> str:
        project_filter, _ = self._build_project_filter(project_ids)
        return f"""
            SELECT
                service.description AS service_name,
                sku.description AS sku_name,
                usage_start_time,
                usage_end_time,
                CAST(cost AS NUMERIC) AS cost,
                currency,
                project.id AS project_id,
                labels,
                (
                    SELECT CAST(IFNULL(SUM(c.amount), 0) AS NUMERIC)
                    FROM UNNEST(credits) AS c
                ) AS credits
            FROM {self._get_table_reference()}
            WHERE {self._get_date_filter_sql()}
            {project_filter}
        """

    def read_records(
        self,
        date_range: DateRange,
        project_ids: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[BillingRecord]:
        """Read billing records whose usage started within a date range.

        The query is submitted and awaited eagerly so that backend failures raise here.
        Result pages are then fetched lazily as the returned iterator is consumed.

        Args:
            date_range: Inclusive usage date range
            project_ids: Restrict to these projects (optional)
            timeout: Seconds to wait for the query job (optional)

        Returns:
            Iterator of BillingRecord

        Raises:
            InvalidFilterError: If the filter is malformed
            QueryError: If BigQuery fails
        """
        if not isinstance(date_range, DateRange):
            raise InvalidFilterError(f"Invalid date range: {date_range!r}")
        if project_ids is not None and any(not p or not str(p).strip() for p in project_ids):
            raise InvalidFilterError("Project filter contains an empty project id")

        query = self._build_query(project_ids)
        job_config = self._build_query_job_config(date_range, project_ids=project_ids)

        logger.debug(f"Querying billing export {self.billing_dataset}.{self.billing_table} for {date_range}")
        try:
            job = self.client.query(query, job_config=job_config, location=self.location)
            rows = job.result(timeout=timeout, page_size=self.page_size)
        except GoogleAPIError as e:
            raise QueryError(f"Billing query failed for {date_range}: {e}", cause=e)
        except concurrent.futures.TimeoutError as e:
            raise QueryError(f"Billing query timed out for {date_range}", cause=e)
        except (OSError, TransportError) as e:
            # requests and socket errors are OSError subclasses
            raise QueryError(f"BigQuery backend unavailable for {date_range}: {e}", cause=e)

        return self._iter_records(rows, date_range)

    def _iter_records(self, rows, date_range: DateRange) -> Iterator[BillingRecord]:
        count = 0
        try:
            for row in rows:
                count += 1
                yield row_to_record(row)
        except GoogleAPIError as e:
            raise QueryError(f"Failed reading billing rows for {date_range}: {e}", cause=e)
        except (OSError, TransportError) as e:
            raise QueryError(f"BigQuery backend unavailable reading rows for {date_range}: {e}", cause=e)
        logger.debug(f"Read {count} billing rows for {date_range}")


def _labels_to_tuple(labels: Any) -> tuple:
    if not labels:
        return ()
    pairs = []
    for label in labels:
        if isinstance(label, dict):
            pairs.append((str(label.get("key", "")), str(label.get("value", ""))))
        else:
            key, value = label
            pairs.append((str(key), str(value)))
    return tuple(pairs)


def row_to_record(row) -> BillingRecord:
    """Convert a BigQuery row (or mapping) from the export query into a BillingRecord."""
    credits = row.get("credits")
    return BillingRecord(
        service=row.get("service_name") or "",
        sku=row.get("sku_name") or "",
        usage_start=row.get("usage_start_time"),
        usage_end=row.get("usage_end_time"),
        cost=row.get("cost"),
        currency=row.get("currency") or "",
        project_id=row.get("project_id"),
        labels=_labels_to_tuple(row.get("labels")),
        credits=credits if credits is not None else Decimal("0"),
    )
