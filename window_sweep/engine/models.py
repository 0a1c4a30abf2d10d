"""
Window sweep data models — enums, trades, window grid, sweep results.

Defines all data structures flowing through the sweep pipeline:
- Trade direction and ranking objective enums
- Historical trades and window configurations
- Metrics snapshots returned by the metrics client
- Per-combination and per-trade sweep results
- Half-life buckets, aggregated stats and report containers
"""

import itertools
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable


# =============================================================================
# Enums
# =============================================================================


class TradeDirection(str, Enum):
    """Pair trade direction (long the spread or short the spread)."""

    LONG = "long"
    SHORT = "short"


class RankingObjective(str, Enum):
    """Objective used to pick the best window combination within a bucket."""

    BETA_DRIFT = "lowest_beta_drift"
    PREDICTION_ERROR = "best_prediction_accuracy"
    DAYS_TO_TARGET = "fastest_to_target"
    SHARPE = "best_sharpe"


# =============================================================================
# Window Configuration
# =============================================================================


@dataclass(frozen=True, order=True)
class WindowConfig:
    """A (beta window, z-score window) pair, in days.

    Ordering is beta window ascending, then z-score window ascending, which
    is also the sweep iteration order and the ranking tie-break.
    """

    beta_window: int
    z_score_window: int

    def __post_init__(self) -> None:
        if self.beta_window <= 0 or self.z_score_window <= 0:
            raise ValueError(
                f"Window sizes must be positive, got {self.beta_window}/{self.z_score_window}"
            )

    @property
    def key(self) -> str:
        return f"{self.beta_window}d_{self.z_score_window}d"

    @classmethod
    def from_key(cls, key: str) -> "WindowConfig":
        beta, z_score = key.split("_")
        return cls(int(beta.rstrip("d")), int(z_score.rstrip("d")))

    @staticmethod
    def grid(beta_windows: Iterable[int], z_score_windows: Iterable[int]) -> list["WindowConfig"]:
        """Full cartesian product in sweep order."""
        return [
            WindowConfig(beta, z_score)
            for beta, z_score in itertools.product(
                sorted(set(beta_windows)), sorted(set(z_score_windows)),
            )
        ]


# =============================================================================
# Historical Trade
# =============================================================================


@dataclass(frozen=True)
class HistoricalTrade:
    """A closed pair trade, read from the trade history store."""

    trade_id: str
    pair: str
    asset_a: str
    asset_b: str
    entry_time: datetime
    exit_time: datetime
    entry_z_score: float | None
    exit_z_score: float | None
    total_return_pct: float
    direction: TradeDirection = TradeDirection.LONG

    @property
    def duration_days(self) -> float:
        return (self.exit_time - self.entry_time).total_seconds() / 86400

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "pair": self.pair,
            "asset_a": self.asset_a,
            "asset_b": self.asset_b,
            "entry_time": self.entry_time.isoformat(),
            "exit_time": self.exit_time.isoformat(),
            "entry_z_score": self.entry_z_score,
            "exit_z_score": self.exit_z_score,
            "total_return_pct": self.total_return_pct,
            "direction": self.direction.value,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "HistoricalTrade":
        return cls(
            trade_id=str(d["trade_id"]),
            pair=d["pair"],
            asset_a=d["asset_a"],
            asset_b=d["asset_b"],
            entry_time=datetime.fromisoformat(d["entry_time"]),
            exit_time=datetime.fromisoformat(d["exit_time"]),
            entry_z_score=d.get("entry_z_score"),
            exit_z_score=d.get("exit_z_score"),
            total_return_pct=d["total_return_pct"],
            direction=TradeDirection(d.get("direction") or "long"),
        )


# =============================================================================
# Metrics Snapshot
# =============================================================================


MAX_RETRIES_EXCEEDED = "max retries exceeded"


@dataclass(frozen=True)
class MetricsSnapshot:
    """One metrics provider result for (pair, time, window config)."""

    beta: float | None = None
    z_score: float | None = None
    spread_std_dev: float | None = None
    half_life_days: float | None = None
    error: str | None = None
    # Last underlying provider error, kept when error is normalised
    detail: str | None = None
    rate_limited: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: str, detail: str | None = None, rate_limited: bool = False) -> "MetricsSnapshot":
        return cls(error=error, detail=detail, rate_limited=rate_limited)


# =============================================================================
# Sweep Results
# =============================================================================


@dataclass
class ComboResult:
    """Outcome of one (trade, window config) cell of the sweep matrix."""

    window: WindowConfig
    beta_at_entry: float | None = None
    beta_at_exit: float | None = None
    beta_drift: float | None = None
    predicted_roi: float | None = None
    actual_roi: float | None = None
    prediction_error: float | None = None
    abs_error: float | None = None
    win: bool | None = None
    days_to_target: float | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        """Usable for aggregation: no error and a measured beta drift."""
        return self.error is None and self.beta_drift is not None

    @classmethod
    def failed(cls, window: WindowConfig, error: str) -> "ComboResult":
        return cls(window=window, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "beta_window": self.window.beta_window,
            "z_score_window": self.window.z_score_window,
            "beta_at_entry": self.beta_at_entry,
            "beta_at_exit": self.beta_at_exit,
            "beta_drift": self.beta_drift,
            "predicted_roi": self.predicted_roi,
            "actual_roi": self.actual_roi,
            "prediction_error": self.prediction_error,
            "abs_error": self.abs_error,
            "win": self.win,
            "days_to_target": self.days_to_target,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ComboResult":
        return cls(
            window=WindowConfig(d["beta_window"], d["z_score_window"]),
            beta_at_entry=d.get("beta_at_entry"),
            beta_at_exit=d.get("beta_at_exit"),
            beta_drift=d.get("beta_drift"),
            predicted_roi=d.get("predicted_roi"),
            actual_roi=d.get("actual_roi"),
            prediction_error=d.get("prediction_error"),
            abs_error=d.get("abs_error"),
            win=d.get("win"),
            days_to_target=d.get("days_to_target"),
            error=d.get("error"),
        )


def is_valid_half_life(value: float | None) -> bool:
    """A half-life is usable for bucketing when finite and strictly positive."""
    return value is not None and math.isfinite(value) and value > 0


@dataclass
class TradeSweepResult:
    """One trade with its reference half-life and full combination matrix."""

    trade: HistoricalTrade
    half_life: float | None = None
    combinations: dict[str, ComboResult] = field(default_factory=dict)
    skip_reason: str | None = None

    @property
    def has_valid_half_life(self) -> bool:
        return is_valid_half_life(self.half_life)

    def failed_cells(self) -> list[ComboResult]:
        """Error-carrying combinations in window order."""
        return [
            combo for combo in sorted(self.combinations.values(), key=lambda c: c.window)
            if combo.error is not None
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade": self.trade.to_dict(),
            "half_life": self.half_life,
            "skip_reason": self.skip_reason,
            "duration_days": self.trade.duration_days,
            "combinations": {key: combo.to_dict() for key, combo in self.combinations.items()},
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "TradeSweepResult":
        return cls(
            trade=HistoricalTrade.from_dict(d["trade"]),
            half_life=d.get("half_life"),
            skip_reason=d.get("skip_reason"),
            combinations={
                key: ComboResult.from_dict(combo)
                for key, combo in d.get("combinations", {}).items()
            },
        )


# =============================================================================
# Aggregation
# =============================================================================


@dataclass(frozen=True)
class HalfLifeBucket:
    """Half-open half-life range (lower, upper]; upper None means unbounded."""

    label: str
    lower: float
    upper: float | None = None

    def contains(self, half_life: float) -> bool:
        if half_life <= self.lower:
            return False
        return self.upper is None or half_life <= self.upper


@dataclass
class ComboStats:
    """Summary statistics for one window config inside one half-life bucket."""

    window: WindowConfig
    count: int
    avg_beta_drift: float | None = None
    avg_abs_error: float | None = None
    avg_prediction_error: float | None = None
    avg_predicted_roi: float | None = None
    avg_actual_roi: float | None = None
    win_rate: float = 0.0
    avg_days_to_target: float | None = None
    sharpe_actual: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "beta_window": self.window.beta_window,
            "z_score_window": self.window.z_score_window,
            "count": self.count,
            "avg_beta_drift": self.avg_beta_drift,
            "avg_abs_error": self.avg_abs_error,
            "avg_prediction_error": self.avg_prediction_error,
            "avg_predicted_roi": self.avg_predicted_roi,
            "avg_actual_roi": self.avg_actual_roi,
            "win_rate": self.win_rate,
            "avg_days_to_target": self.avg_days_to_target,
            "sharpe_actual": self.sharpe_actual,
        }


@dataclass(frozen=True)
class BestCombination:
    """Winning window config for one ranking objective."""

    objective: RankingObjective
    window: WindowConfig
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "objective": self.objective.value,
            "beta_window": self.window.beta_window,
            "z_score_window": self.window.z_score_window,
            "value": self.value,
        }


@dataclass
class BucketReport:
    """Aggregated and ranked results of one half-life bucket."""

    bucket: HalfLifeBucket
    trade_count: int
    stats: dict[str, ComboStats] = field(default_factory=dict)
    best: list[BestCombination] = field(default_factory=list)


@dataclass
class SweepReport:
    """Everything the report generator renders for one run."""

    generated_at: datetime
    results: list[TradeSweepResult]
    buckets: list[BucketReport]
    skipped: list[TradeSweepResult]

    @property
    def usable_count(self) -> int:
        return len(self.results) - len(self.skipped)
