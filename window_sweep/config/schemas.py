"""
Pydantic schemas for sweep configuration.
Defines the window grid, half-life buckets, retry policy and throttling.
"""

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from window_sweep.engine.models import HalfLifeBucket, WindowConfig

DEFAULT_WINDOWS = [3, 7, 14, 30]
DEFAULT_BUCKET_BOUNDARIES = [3.0, 7.0, 14.0]


class RetryConfig(BaseModel):
    """Metrics provider retry policy"""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, le=20, description="Attempts per provider call")
    rate_limit_cooldown: float = Field(
        default=10.0,
        ge=0,
        description="Seconds to wait after a rate-limit error",
    )
    backoff_base: float = Field(
        default=2.0,
        ge=0,
        description="Backoff after an ordinary error is backoff_base * attempt number",
    )


class ThrottleConfig(BaseModel):
    """Self-throttling delays against the provider's steady-state rate limit"""

    model_config = ConfigDict(frozen=True)

    call_delay: float = Field(default=0.5, ge=0, description="Seconds before every provider call")
    trade_delay: float = Field(default=2.0, ge=0, description="Seconds between trades")


class SweepConfig(BaseModel):
    """Full sweep configuration, injected into the sweep engine"""

    model_config = ConfigDict(frozen=True)

    beta_windows: list[int] = Field(
        default_factory=lambda: list(DEFAULT_WINDOWS),
        min_length=1,
        description="Candidate beta windows in days",
    )
    z_score_windows: list[int] = Field(
        default_factory=lambda: list(DEFAULT_WINDOWS),
        min_length=1,
        description="Candidate z-score windows in days",
    )
    bucket_boundaries: list[float] = Field(
        default_factory=lambda: list(DEFAULT_BUCKET_BOUNDARIES),
        min_length=1,
        description="Inclusive upper bounds of the half-life buckets; the last bucket is open-ended",
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)

    @field_validator("beta_windows", "z_score_windows")
    @classmethod
    def validate_windows(cls, v: list[int]) -> list[int]:
        if any(w <= 0 for w in v):
            raise ValueError("window sizes must be positive")
        return sorted(set(v))

    @field_validator("bucket_boundaries")
    @classmethod
    def validate_boundaries(cls, v: list[float]) -> list[float]:
        if any(b <= 0 for b in v):
            raise ValueError("bucket boundaries must be positive")
        if any(later <= earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("bucket boundaries must be strictly increasing")
        return v

    @property
    def window_grid(self) -> "list[WindowConfig]":
        from window_sweep.engine.models import WindowConfig

        return WindowConfig.grid(self.beta_windows, self.z_score_windows)

    @property
    def reference_window(self) -> "WindowConfig":
        """Largest window of each candidate set, used for the reference half-life."""
        from window_sweep.engine.models import WindowConfig

        return WindowConfig(max(self.beta_windows), max(self.z_score_windows))

    @property
    def buckets(self) -> "list[HalfLifeBucket]":
        return build_buckets(self.bucket_boundaries)


def build_buckets(boundaries: list[float]) -> "list[HalfLifeBucket]":
    """Turn [3, 7, 14] into 0-3d, 3-7d, 7-14d, 14d+."""
    from window_sweep.engine.models import HalfLifeBucket

    buckets = []
    lower = 0.0
    for upper in boundaries:
        buckets.append(HalfLifeBucket(label=f"{lower:g}-{upper:g}d", lower=lower, upper=upper))
        lower = upper
    buckets.append(HalfLifeBucket(label=f"{lower:g}d+", lower=lower))
    return buckets
