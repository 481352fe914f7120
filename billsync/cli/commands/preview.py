"""Preview command module: aggregate without writing."""

import logging
from typing import Optional, Tuple

import click

from billsync.cli.commands.base import BaseCommand
from billsync.cli.constants import EX_OK
from billsync.cli.exceptions import CLIException, exit_code_for
from billsync.cli.utils.display import console, print_cost_rows, show_enhanced_progress
from billsync.core import SyncRunner
from billsync.exceptions import BillSyncError
from billsync.utils.helpers import Deadline, get_month_to_date_range

logger = logging.getLogger(__name__)


class PreviewCommand(BaseCommand):
    """Preview command implementation."""

    def __init__(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        projects: Tuple[str, ...] = (),
        limit: Optional[int] = 20,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.start_date = start_date
        self.end_date = end_date
        self.projects = projects
        self.limit = limit

    def run(self) -> int:
        """Aggregate a date range and print the rows.

        Returns:
            Exit code (0 for success, non-zero for errors)
        """
        try:
            config = self.load_config()
            date_range = self.parse_date_range(self.start_date, self.end_date) or get_month_to_date_range()

            show_enhanced_progress("Initializing BigQuery client...")
            runner = SyncRunner.from_config(config)

            show_enhanced_progress(f"Aggregating billing costs for {date_range}...")
            rows = runner.collect_rows(
                date_range,
                project_ids=list(self.projects) or None,
                deadline=Deadline(config.run_timeout_seconds),
            )
            if not rows:
                console.print(f"[yellow]No billing data for {date_range}[/]")
                return EX_OK
            print_cost_rows(rows, runner.aggregator.dimension_titles, limit=self.limit)
            return EX_OK
        except BillSyncError as e:
            logger.error(f"Preview command failed: {e.message}", exc_info=True)
            console.print(f"[red]Preview failed:[/red] {e.message}")
            return exit_code_for(e)


@click.command()
@BaseCommand.common_options
@BaseCommand.range_options
@click.option("--limit", type=int, default=20, show_default=True, help="Maximum rows to print (0 for all)")
@click.pass_context
def preview(
    ctx: click.Context,
    project_id: Optional[str],
    dataset_id: Optional[str],
    table_id: Optional[str],
    location: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    projects: Tuple[str, ...],
    limit: int,
) -> None:
    """Show aggregated costs without writing to a spreadsheet."""
    cmd = PreviewCommand(
        start_date=start_date,
        end_date=end_date,
        projects=projects,
        limit=limit or None,
        config_file=ctx.obj.get("config_file") if ctx.obj else None,
        project_id=project_id,
        dataset_id=dataset_id,
        table_id=table_id,
        location=location,
    )
    exit_code = cmd.run()
    if exit_code != EX_OK:
        raise CLIException(f"Preview command failed with exit code {exit_code}", exit_code)
