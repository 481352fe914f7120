"""One-shot sync command module."""

import logging
from typing import Optional, Tuple

import click

from billsync.cli.commands.base import BaseCommand
from billsync.cli.constants import EX_OK
from billsync.cli.exceptions import CLIException, exit_code_for
from billsync.cli.utils.display import console, print_run_record, show_enhanced_progress
from billsync.core import SyncRunner
from billsync.exceptions import BillSyncError

logger = logging.getLogger(__name__)


class SyncCommand(BaseCommand):
    """Sync command implementation."""

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_name: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        projects: Tuple[str, ...] = (),
        timeout: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.start_date = start_date
        self.end_date = end_date
        self.projects = projects
        self.timeout = timeout

    def run(self) -> int:
        """Run one sync.

        Returns:
            Exit code (0 for success, non-zero for errors)
        """
        target = None
        runner = None
        try:
            config = self.load_config()
            target = self.parse_target(self.spreadsheet_id, self.sheet_name, config)
            date_range = self.parse_date_range(self.start_date, self.end_date)

            show_enhanced_progress("Initializing BigQuery and Sheets clients...")
            runner = SyncRunner.from_config(config)

            show_enhanced_progress(f"Syncing billing costs to {target}...")
            record = runner.run(
                target,
                date_range=date_range,
                project_ids=list(self.projects) or None,
                deadline_seconds=self.timeout,
            )
            print_run_record(record)
            return EX_OK
        except BillSyncError as e:
            logger.error(f"Sync command failed: {e.message}", exc_info=True)
            console.print(f"[red]Sync failed:[/red] {e.message}")
            if runner is not None and target is not None:
                print_run_record(runner.registry.get(target))
            return exit_code_for(e)


@click.command()
@BaseCommand.common_options
@BaseCommand.range_options
@click.option("--spreadsheet-id", required=True, help="Target spreadsheet id")
@click.option("--sheet-name", help="Tab to overwrite (default: configured sheet name)")
@click.option("--timeout", type=float, help="Run deadline in seconds (default: configured timeout)")
@click.pass_context
def sync(
    ctx: click.Context,
    project_id: Optional[str],
    dataset_id: Optional[str],
    table_id: Optional[str],
    location: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    projects: Tuple[str, ...],
    spreadsheet_id: str,
    sheet_name: Optional[str],
    timeout: Optional[float],
) -> None:
    """Aggregate billing costs and overwrite a spreadsheet tab."""
    cmd = SyncCommand(
        spreadsheet_id=spreadsheet_id,
        sheet_name=sheet_name,
        start_date=start_date,
        end_date=end_date,
        projects=projects,
        timeout=timeout,
        config_file=ctx.obj.get("config_file") if ctx.obj else None,
        project_id=project_id,
        dataset_id=dataset_id,
        table_id=table_id,
        location=location,
    )
    exit_code = cmd.run()
    if exit_code != EX_OK:
        raise CLIException(f"Sync command failed with exit code {exit_code}", exit_code)
