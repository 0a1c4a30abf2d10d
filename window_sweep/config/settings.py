"""
Runtime settings using pydantic-settings, plus sweep config loading.

Connection details and run options come from the environment (``SWEEP_``
prefix, optionally a ``.env`` file). The window grid, buckets and retry
policy come from an optional YAML file with env overrides on top.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from window_sweep.api.exceptions import ConfigurationError
from window_sweep.config.schemas import SweepConfig
from window_sweep.logging import get_logger

logger = get_logger(__name__)


class SweepSettings(BaseSettings):
    """Environment-driven settings for a sweep run."""

    # Trade history store
    database_url: str = "sqlite+aiosqlite:///trade_history.db"
    trade_limit: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    # Metrics provider
    metrics_api_url: str = "http://localhost:3001/api"
    metrics_api_key: str | None = None
    metrics_timeout: float = 30.0

    # Output
    report_dir: str = "backtest_reports"
    checkpoint_dir: str | None = None

    # Sweep config file and overrides
    config_path: str | None = None
    beta_windows: str | None = None
    z_score_windows: str | None = None

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    json_logs: bool = False

    model_config = SettingsConfigDict(env_prefix="SWEEP_", env_file=".env", extra="ignore")

    @property
    def beta_windows_list(self) -> list[int] | None:
        return _parse_int_list(self.beta_windows)

    @property
    def z_score_windows_list(self) -> list[int] | None:
        return _parse_int_list(self.z_score_windows)


def load_settings() -> SweepSettings:
    """Read SweepSettings from the environment.

    Raises:
        ConfigurationError: If an environment value fails validation
    """
    try:
        return SweepSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid environment settings: {e}") from e


def _parse_int_list(raw: str | None) -> list[int] | None:
    if not raw:
        return None
    try:
        return [int(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ConfigurationError(f"Invalid window list {raw!r}: {e}") from e


def load_sweep_config(settings: SweepSettings) -> SweepConfig:
    """
    Build the sweep config: defaults <- YAML file <- env overrides.

    Raises:
        ConfigurationError: If the file is missing or validation fails
    """
    raw: dict[str, Any] = {}

    if settings.config_path:
        path = Path(settings.config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {path}")

    if settings.beta_windows_list is not None:
        raw["beta_windows"] = settings.beta_windows_list
    if settings.z_score_windows_list is not None:
        raw["z_score_windows"] = settings.z_score_windows_list

    try:
        config = SweepConfig(**raw)
    except ValidationError as e:
        logger.error("Sweep configuration invalid", errors=e.error_count())
        raise ConfigurationError(f"Invalid sweep configuration: {e}") from e

    logger.info(
        "Sweep configuration loaded",
        beta_windows=config.beta_windows,
        z_score_windows=config.z_score_windows,
        buckets=[b.label for b in config.buckets],
        source=settings.config_path or "defaults",
    )
    return config
