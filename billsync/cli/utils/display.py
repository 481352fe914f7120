"""Display utilities for CLI output."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from billsync.types import AggregatedCostRow, RunRecord, RunState

console = Console()

STATE_STYLES = {
    RunState.IDLE: "dim",
    RunState.RUNNING: "yellow",
    RunState.SUCCEEDED: "green",
    RunState.FAILED: "red",
}


def show_enhanced_progress(message: str, done: bool = False, spinner: str = "dots") -> None:
    """Show progress with enhanced styling."""
    with Progress(
        SpinnerColumn(spinner_name=spinner),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(message, total=None)
        if done:
            progress.update(task, completed=True)


def print_run_record(record: RunRecord) -> None:
    """Print a run summary table."""
    style = STATE_STYLES.get(record.state, "white")
    table = Table(title="Sync Run", show_header=False, title_style="bold cyan")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Target", str(record.target))
    table.add_row("State", f"[{style}]{record.state.value}[/]")
    table.add_row("Run ID", record.run_id or "-")
    table.add_row("Date range", str(record.date_range) if record.date_range else "-")
    table.add_row("Rows written", str(record.rows_written))
    if record.duration_seconds is not None:
        table.add_row("Duration", f"{record.duration_seconds:.1f}s")
    if record.error:
        table.add_row("Error", f"[red]{record.error}[/]")
    console.print(table)


def print_cost_rows(
    rows: Sequence[AggregatedCostRow],
    dimension_titles: Sequence[str],
    limit: Optional[int] = None,
) -> None:
    """Print aggregated cost rows as a table."""
    table = Table(title="Aggregated Costs", title_style="bold cyan")
    for title in dimension_titles:
        table.add_column(title)
    table.add_column("Time Bucket")
    table.add_column("Total Cost", justify="right", style="green")
    table.add_column("Currency")
    table.add_column("Rows", justify="right")

    shown = rows[:limit] if limit else rows
    for row in shown:
        total = row.total_cost.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        table.add_row(
            *[value for _, value in row.dimensions],
            row.time_bucket or "-",
            f"{total:,}",
            row.currency,
            str(row.row_count),
        )
    console.print(table)
    if limit and len(rows) > limit:
        console.print(f"[dim]... {len(rows) - limit} more row(s)[/]")
