"""Application configuration.

Configuration is read once at startup into an immutable `AppConfig` and passed
explicitly to the reader, writer, runner and API.

Priority: 1) environment variables, 2) TOML config file, 3) defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import toml

from billsync.exceptions import ConfigError

logger = logging.getLogger(__name__)

VALID_DIMENSIONS = ("service", "sku", "project")
VALID_TIME_BUCKETS = ("day", "week", "month", "none")
LABEL_DIMENSION_PREFIX = "label:"

# Field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "project_id": "GOOGLE_CLOUD_PROJECT",
    "dataset_id": "BILLING_DATASET_ID",
    "table_id": "BILLING_TABLE_ID",
    "credentials_path": "GOOGLE_APPLICATION_CREDENTIALS",
    "location": "BIGQUERY_LOCATION",
    "sheet_name": "SHEET_NAME",
    "dimensions": "AGGREGATION_DIMENSIONS",
    "time_bucket": "AGGREGATION_TIME_BUCKET",
    "include_credits": "INCLUDE_CREDITS",
    "max_workers": "MAX_WORKERS",
    "fanout_days": "FANOUT_DAYS",
    "page_size": "QUERY_PAGE_SIZE",
    "run_timeout_seconds": "RUN_TIMEOUT_SECONDS",
    "sync_max_attempts": "SYNC_MAX_ATTEMPTS",
    "sync_backoff_initial": "SYNC_BACKOFF_INITIAL",
    "sync_backoff_max": "SYNC_BACKOFF_MAX",
    "sheets_timeout_seconds": "SHEETS_TIMEOUT_SECONDS",
    "log_level": "LOG_LEVEL",
}

CONFIG_FILE_ENV = "BILLSYNC_CONFIG"


@dataclass(frozen=True)
class AppConfig:
    """Immutable process configuration."""
    project_id: str
    dataset_id: str
    table_id: str
    credentials_path: Optional[str] = None
    location: str = "US"
    sheet_name: str = "Costs"
    dimensions: Tuple[str, ...] = ("service", "project")
    time_bucket: str = "month"
    include_credits: bool = True
    max_workers: int = 4
    fanout_days: int = 7
    page_size: int = 10000
    run_timeout_seconds: float = 300.0
    sync_max_attempts: int = 5
    sync_backoff_initial: float = 1.0
    sync_backoff_max: float = 30.0
    sheets_timeout_seconds: float = 60.0
    log_level: str = "INFO"

    def __post_init__(self):
        for name in ("project_id", "dataset_id", "table_id"):
            if not getattr(self, name):
                raise ConfigError(f"{name} is required (set {ENV_VARS[name]})")
        if not self.dimensions:
            raise ConfigError("At least one aggregation dimension is required")
        for dimension in self.dimensions:
            if dimension.startswith(LABEL_DIMENSION_PREFIX):
                if not dimension[len(LABEL_DIMENSION_PREFIX):]:
                    raise ConfigError(f"Label dimension needs a key: {dimension!r}")
            elif dimension not in VALID_DIMENSIONS:
                raise ConfigError(
                    f"Unknown dimension {dimension!r}; expected one of "
                    f"{', '.join(VALID_DIMENSIONS)} or label:<key>"
                )
        if self.time_bucket not in VALID_TIME_BUCKETS:
            raise ConfigError(
                f"Unknown time bucket {self.time_bucket!r}; expected one of "
                f"{', '.join(VALID_TIME_BUCKETS)}"
            )
        for name in ("max_workers", "fanout_days", "page_size", "sync_max_attempts"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1")
        if self.run_timeout_seconds <= 0:
            raise ConfigError("run_timeout_seconds must be positive")
        if self.sheets_timeout_seconds <= 0:
            raise ConfigError("sheets_timeout_seconds must be positive")
        if self.sync_backoff_initial < 0 or self.sync_backoff_max < self.sync_backoff_initial:
            raise ConfigError("sync backoff must satisfy 0 <= initial <= max")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Unknown log level {self.log_level!r}")

    @property
    def table_reference(self) -> str:
        """Fully qualified billing export table, e.g. `proj.dataset.table`."""
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


def _parse_dimensions(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return tuple(item.strip() for item in items if str(item).strip())


_CONVERTERS = {
    "dimensions": _parse_dimensions,
    "include_credits": _parse_bool,
    "max_workers": int,
    "fanout_days": int,
    "page_size": int,
    "run_timeout_seconds": float,
    "sync_max_attempts": int,
    "sync_backoff_initial": float,
    "sync_backoff_max": float,
    "sheets_timeout_seconds": float,
    "time_bucket": lambda v: str(v).strip().lower(),
    "log_level": lambda v: str(v).strip().upper(),
}


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load the `[billsync]` table (or the top level) of a TOML file."""
    try:
        data = toml.load(str(path))
    except (OSError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Could not load config file {path}: {e}", cause=e)
    section = data.get("billsync", data)
    unknown = set(section) - set(ENV_VARS)
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {path}: {', '.join(sorted(unknown))}")
    return {key: value for key, value in section.items() if key in ENV_VARS}


def load_config(
    config_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Build the process configuration.

    Args:
        config_file: Optional TOML file. Falls back to $BILLSYNC_CONFIG.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        AppConfig

    Raises:
        ConfigError: If a value is missing or invalid
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    config_file = config_file or environ.get(CONFIG_FILE_ENV)
    if config_file:
        values.update(load_config_file(Path(config_file)))

    for name, env_var in ENV_VARS.items():
        raw = environ.get(env_var)
        if raw is not None and raw != "":
            values[name] = raw

    try:
        for name, converter in _CONVERTERS.items():
            if name in values:
                values[name] = converter(values[name])
    except ValueError as e:
        raise ConfigError(f"Invalid configuration value: {e}", cause=e)

    for name in ("project_id", "dataset_id", "table_id"):
        values.setdefault(name, "")

    return AppConfig(**values)
