"""Base command module with shared functionality."""

import os
from typing import Any, Dict, Optional

import click

from billsync.config import ENV_VARS, AppConfig, load_config
from billsync.types import DateRange, SyncTarget
from billsync.utils.helpers import resolve_date_range


class BaseCommand:
    """Base class for CLI commands with shared functionality."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        project_id: Optional[str] = None,
        dataset_id: Optional[str] = None,
        table_id: Optional[str] = None,
        location: Optional[str] = None,
    ):
        self.config_file = config_file
        self.overrides: Dict[str, Any] = {
            key: value
            for key, value in {
                "project_id": project_id,
                "dataset_id": dataset_id,
                "table_id": table_id,
                "location": location,
            }.items()
            if value
        }
        self.config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Load configuration. Command line overrides win over environment and file."""
        environ = dict(os.environ)
        for key, value in self.overrides.items():
            environ[ENV_VARS[key]] = value
        self.config = load_config(self.config_file, environ=environ)
        return self.config

    @staticmethod
    def parse_target(spreadsheet_id: str, sheet_name: Optional[str], config: AppConfig) -> SyncTarget:
        try:
            return SyncTarget(spreadsheet_id, sheet_name or config.sheet_name)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--spreadsheet-id/--sheet-name")

    @staticmethod
    def parse_date_range(start_date: Optional[str], end_date: Optional[str]) -> Optional[DateRange]:
        if not start_date and not end_date:
            return None
        try:
            return resolve_date_range(start_date, end_date)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--start-date/--end-date")

    @staticmethod
    def common_options(f):
        """Decorator to add common command options."""
        options = [
            click.option(
                "--project-id",
                help="GCP project holding the billing export (defaults to $GOOGLE_CLOUD_PROJECT)",
            ),
            click.option(
                "--dataset-id",
                help="Billing export dataset (defaults to $BILLING_DATASET_ID)",
            ),
            click.option(
                "--table-id",
                help="Billing export table, or a wildcard like gcp_billing_export_v1_* for daily shards",
            ),
            click.option(
                "--location",
                help="BigQuery location (default: US, e.g., 'asia-southeast1', 'europe-west1')",
            ),
        ]
        for option in reversed(options):
            f = option(f)
        return f

    @staticmethod
    def range_options(f):
        """Decorator to add date range options."""
        options = [
            click.option("--start-date", help="First usage date, YYYY-MM-DD (default: start of month)"),
            click.option("--end-date", help="Last usage date, YYYY-MM-DD (default: today)"),
            click.option(
                "--project", "projects",
                multiple=True,
                help="Restrict to project id (can be specified multiple times)",
            ),
        ]
        for option in reversed(options):
            f = option(f)
        return f
