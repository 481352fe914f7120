"""Base class for BigQuery billing services.

Google Cloud billing export to BigQuery supports two table layouts:
- Daily-sharded: one table per day, e.g. gcp_billing_export_v1_20260201; addressed here
  with a wildcard table id ending in `*` and pruned by _TABLE_SUFFIX.
- Single partitioned table: one table per billing account, e.g. gcp_billing_export_v1_0148A9_A6130F_E0294F.
Both layouts are filtered on DATE(usage_start_time) so that disjoint date ranges select disjoint rows.
"""

from typing import List, Optional, Sequence

from google.cloud import bigquery

from billsync.types import DateRange


class BaseBillingService:
    """Base class for BigQuery billing export services."""

    def __init__(
        self,
        client: bigquery.Client,
        billing_dataset: str,
        billing_table: str,
        location: str = "US",
    ):
        """Initialize base billing service.

        Args:
            client: BigQuery client
            billing_dataset: Full dataset ID (e.g., 'project.dataset_name')
            billing_table: Table name. For daily-sharded export use a wildcard such as
                'gcp_billing_export_v1_*'. For a single partitioned table use the full
                name, e.g. 'gcp_billing_export_v1_0148A9_A6130F_E0294F'.
            location: BigQuery location of the dataset
        """
        self.client = client
        self.billing_dataset = billing_dataset
        self.billing_table = billing_table
        self.location = location

    def _is_sharded_table(self) -> bool:
        """Return True if billing_table is a wildcard over daily shards."""
        return self.billing_table.endswith("*")

    def _get_date_filter_sql(self) -> str:
        """Return the SQL predicate for filtering by date range.
        For daily-sharded tables the shard scan is also pruned: a cost line cannot be
        exported before its usage started, so shards older than the range hold nothing.
        """
        predicate = "DATE(usage_start_time) BETWEEN @start_date AND @end_date"
        if self._is_sharded_table():
            predicate += " AND _TABLE_SUFFIX >= @start_suffix"
        return predicate

    def _build_project_filter(self, project_ids: Optional[Sequence[str]] = None) -> tuple:
        """Build project filter clause for BigQuery queries.

        Args:
            project_ids: List of project IDs (optional)

        Returns:
            Tuple of (filter_clause, parameters_list)
        """
        if not project_ids:
            return "", []
        return "AND project.id IN UNNEST(@project_ids)", [
            bigquery.ArrayQueryParameter("project_ids", "STRING", list(project_ids))
        ]

    def _build_date_parameters(self, date_range: DateRange) -> list:
        """Build date parameters for BigQuery queries.

        Args:
            date_range: Inclusive date range

        Returns:
            List of ScalarQueryParameter objects
        """
        parameters = [
            bigquery.ScalarQueryParameter("start_date", "DATE", date_range.start),
            bigquery.ScalarQueryParameter("end_date", "DATE", date_range.end),
        ]
        if self._is_sharded_table():
            parameters.append(
                bigquery.ScalarQueryParameter(
                    "start_suffix", "STRING", date_range.start.strftime("%Y%m%d")
                )
            )
        return parameters

    def _build_query_job_config(
        self,
        date_range: DateRange,
        project_ids: Optional[Sequence[str]] = None,
        additional_parameters: Optional[list] = None,
    ) -> bigquery.QueryJobConfig:
        """Build QueryJobConfig with common parameters.

        Args:
            date_range: Inclusive date range
            project_ids: List of project IDs (optional)
            additional_parameters: Additional query parameters

        Returns:
            QueryJobConfig object
        """
        parameters: List = []
        parameters.extend(self._build_date_parameters(date_range))

        _, project_params = self._build_project_filter(project_ids)
        parameters.extend(project_params)

        if additional_parameters:
            parameters.extend(additional_parameters)

        return bigquery.QueryJobConfig(query_parameters=parameters)

    def _get_table_reference(self) -> str:
        """Get BigQuery table reference string.

        Returns:
            Backquoted table reference, e.g. `project.dataset.gcp_billing_export_v1_*`
        """
        return f"`{self.billing_dataset}.{self.billing_table}`"
