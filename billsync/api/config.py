"""Process-wide runner used by the API routes."""

import logging
import threading
from typing import Optional

from billsync.config import AppConfig, load_config
from billsync.core import SyncRunner

logger = logging.getLogger(__name__)

_runner: Optional[SyncRunner] = None
_runner_lock = threading.Lock()


def configure_runner(runner: Optional[SyncRunner]) -> None:
    """Install the runner the routes use (None resets it)."""
    global _runner
    with _runner_lock:
        _runner = runner


def get_runner() -> SyncRunner:
    """Get the shared SyncRunner, building it from the environment on first use."""
    global _runner
    with _runner_lock:
        if _runner is None:
            config: AppConfig = load_config()
            logger.info(f"Initializing sync runner for {config.table_reference}")
            _runner = SyncRunner.from_config(config)
        return _runner
