"""Sweep configuration: pydantic schemas and environment settings."""

from window_sweep.config.schemas import (
    RetryConfig,
    SweepConfig,
    ThrottleConfig,
    build_buckets,
)
from window_sweep.config.settings import SweepSettings, load_settings, load_sweep_config

__all__ = [
    "RetryConfig",
    "SweepConfig",
    "ThrottleConfig",
    "build_buckets",
    "SweepSettings",
    "load_settings",
    "load_sweep_config",
]
