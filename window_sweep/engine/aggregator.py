"""
BucketAggregator — Groups sweep results by half-life and summarizes each
window configuration inside each bucket.
"""

import math
from collections.abc import Sequence

import numpy as np

from window_sweep.config.schemas import DEFAULT_BUCKET_BOUNDARIES, build_buckets
from window_sweep.engine.classifier import sharpe_ratio
from window_sweep.engine.models import (
    ComboResult,
    ComboStats,
    HalfLifeBucket,
    TradeSweepResult,
    WindowConfig,
)
from window_sweep.logging import get_logger

logger = get_logger(__name__)


def _finite(values: list[float | None]) -> list[float]:
    return [v for v in values if v is not None and math.isfinite(v)]


def _mean(values: list[float]) -> float | None:
    if not values:
        return None
    return float(np.mean(values))


class BucketAggregator:
    """Half-life bucketing and per-(bucket, window config) statistics."""

    def __init__(self, boundaries: Sequence[float] | None = None) -> None:
        self.buckets: list[HalfLifeBucket] = build_buckets(
            list(boundaries) if boundaries is not None else list(DEFAULT_BUCKET_BOUNDARIES)
        )

    def assign_bucket(self, half_life: float | None) -> HalfLifeBucket | None:
        """Bucket for a half-life, or None when it is missing, non-finite or <= 0."""
        if half_life is None or not math.isfinite(half_life) or half_life <= 0:
            return None
        for bucket in self.buckets:
            if bucket.contains(half_life):
                return bucket
        return None

    def bucket_trades(self, results: Sequence[TradeSweepResult]) -> dict[str, list[TradeSweepResult]]:
        """All buckets in order, each with its trades in source order."""
        grouped: dict[str, list[TradeSweepResult]] = {b.label: [] for b in self.buckets}
        for result in results:
            if not result.has_valid_half_life:
                continue
            bucket = self.assign_bucket(result.half_life)
            if bucket is not None:
                grouped[bucket.label].append(result)
        return grouped

    def skipped(self, results: Sequence[TradeSweepResult]) -> list[TradeSweepResult]:
        """Trades that land in no bucket."""
        return [r for r in results if not r.has_valid_half_life]

    def aggregate(
        self,
        results: Sequence[TradeSweepResult],
    ) -> dict[str, dict[str, ComboStats]]:
        """Bucket label -> window key -> stats. Empty combinations are omitted."""
        grouped = self.bucket_trades(results)
        windows = self._windows(results)

        aggregated: dict[str, dict[str, ComboStats]] = {}
        for label, bucket_results in grouped.items():
            combo_stats: dict[str, ComboStats] = {}
            for window in windows:
                stats = self.combo_stats(bucket_results, window)
                if stats is not None:
                    combo_stats[window.key] = stats
            aggregated[label] = combo_stats

        logger.info(
            "Aggregation complete",
            buckets={label: len(trades) for label, trades in grouped.items()},
            skipped=len(results) - sum(len(t) for t in grouped.values()),
        )
        return aggregated

    @staticmethod
    def combo_stats(
        bucket_results: Sequence[TradeSweepResult],
        window: WindowConfig,
    ) -> ComboStats | None:
        """Stats over the bucket's valid cells for one window config."""
        cells: list[ComboResult] = []
        for result in bucket_results:
            combo = result.combinations.get(window.key)
            if combo is not None and combo.is_valid:
                cells.append(combo)

        if not cells:
            return None

        actual_rois = _finite([c.actual_roi for c in cells])
        days = [d for d in _finite([c.days_to_target for c in cells]) if d > 0]
        wins = sum(1 for c in cells if c.win is True)

        return ComboStats(
            window=window,
            count=len(cells),
            avg_beta_drift=_mean(_finite([c.beta_drift for c in cells])),
            avg_abs_error=_mean(_finite([c.abs_error for c in cells])),
            avg_prediction_error=_mean(_finite([c.prediction_error for c in cells])),
            avg_predicted_roi=_mean(_finite([c.predicted_roi for c in cells])),
            avg_actual_roi=_mean(actual_rois),
            win_rate=wins / len(cells) * 100,
            avg_days_to_target=_mean(days),
            sharpe_actual=sharpe_ratio(actual_rois),
        )

    @staticmethod
    def _windows(results: Sequence[TradeSweepResult]) -> list[WindowConfig]:
        keys: set[str] = set()
        for result in results:
            keys.update(result.combinations)
        return sorted(WindowConfig.from_key(k) for k in keys)
