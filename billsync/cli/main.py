"""Core CLI module for billsync."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click
from rich.console import Console

from billsync import __version__
from billsync.cli.commands import preview, serve, sync
from billsync.cli.constants import EX_GENERAL, EX_OK, EX_USAGE
from billsync.cli.exceptions import CLIException

# Initialize console for rich output
console = Console()


def configure_logging(verbose: int, debug: bool, trace: bool) -> None:
    """Configure logging based on verbosity flags.

    Args:
        verbose: Verbosity level (0-3)
        debug: Enable debug logging
        trace: Enable trace logging (most verbose)
    """
    # Determine log level
    if trace:
        log_level = logging.DEBUG  # Most verbose - shows everything
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    elif debug:
        log_level = logging.DEBUG
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    elif verbose == 1:
        log_level = logging.INFO
        format_str = '%(levelname)s - %(message)s'
    elif verbose >= 2:
        log_level = logging.DEBUG
        format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        log_level = logging.WARNING
        format_str = '%(levelname)s - %(message)s'

    logging.basicConfig(
        level=log_level,
        format=format_str,
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True  # Override any existing configuration
    )

    noisy = ('google', 'googleapiclient', 'urllib3', 'requests')
    if trace or debug or verbose >= 2:
        logging.getLogger('billsync').setLevel(logging.DEBUG)
        # Reduce noise from third-party libraries unless trace is enabled
        if not trace:
            for name in noisy:
                logging.getLogger(name).setLevel(logging.WARNING)
    else:
        for name in noisy:
            logging.getLogger(name).setLevel(logging.ERROR)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="billsync")
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to TOML configuration file",
)
@click.option(
    "--verbose", "-v",
    count=True,
    help="Increase verbosity. Use -v for INFO, -vv for DEBUG",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug logging (equivalent to -vv)",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Enable trace logging (most verbose, includes third-party library logs)",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbose: int, debug: bool, trace: bool) -> None:
    """billsync - Sync Cloud Billing export costs into Google Sheets.

    Run 'billsync --help' to see all available commands.
    """
    configure_logging(verbose, debug, trace)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["trace"] = trace
    ctx.obj["config_file"] = config_file

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(sync)
cli.add_command(preview)
cli.add_command(serve)


@cli.command()
def setup() -> None:
    """Show setup instructions."""
    from billsync.cli.config.setup import show_setup_instructions
    show_setup_instructions()


def main() -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    try:
        cli(prog_name="billsync", standalone_mode=False)
        return EX_OK
    except CLIException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return e.exit_code
    except click.ClickException as e:
        e.show()
        return e.exit_code if e.exit_code is not None else EX_USAGE
    except click.Abort:
        console.print("\n[yellow]Aborted[/yellow]")
        return EX_GENERAL
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user[/yellow]")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        logger = logging.getLogger(__name__)
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        console.print(f"[red]Unexpected error:[/red] {str(e)}")
        return EX_GENERAL


if __name__ == "__main__":
    sys.exit(main())
