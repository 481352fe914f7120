"""API server command module."""

import logging
import os

import click

from billsync.cli.constants import EX_CONFIG
from billsync.cli.exceptions import CLIException
from billsync.cli.utils.display import console, show_enhanced_progress
from billsync.exceptions import ConfigError


@click.command()
@click.option(
    "--host",
    default="0.0.0.0",
    show_default=True,
    help="Interface to bind",
)
@click.option(
    "--port",
    type=int,
    envvar="PORT",
    default=8080,
    show_default=True,
    help="Port for API server (also read from $PORT)",
)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Start the API server that scheduled triggers call."""
    # Lazy import - only load when command is invoked to speed up CLI startup
    from billsync.api.config import get_runner
    from billsync.api.main import start_api_server
    from billsync.config import CONFIG_FILE_ENV

    config_file = ctx.obj.get("config_file") if ctx.obj else None
    if config_file:
        os.environ[CONFIG_FILE_ENV] = config_file

    show_enhanced_progress("Loading configuration...")
    try:
        # Fail fast on bad configuration instead of on the first request
        runner = get_runner()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        raise CLIException(e.message, EX_CONFIG)

    show_enhanced_progress("Starting API server...")
    log_level = runner.config.log_level
    logging.getLogger("billsync").setLevel(log_level)
    start_api_server(host=host, port=port, log_level=log_level.lower())
