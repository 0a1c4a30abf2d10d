"""Window sweep engine — models, classifier, aggregator, ranking, reporter.

The sweep engine and system import the metrics client, so they are imported
from their modules directly (window_sweep.engine.sweep / .system).
"""

from window_sweep.engine.models import (
    BestCombination,
    BucketReport,
    ComboResult,
    ComboStats,
    HalfLifeBucket,
    HistoricalTrade,
    MetricsSnapshot,
    RankingObjective,
    SweepReport,
    TradeDirection,
    TradeSweepResult,
    WindowConfig,
)
from window_sweep.engine.classifier import (
    Outcome,
    classify_outcome,
    days_to_target,
    is_win,
    predicted_roi,
    prediction_error,
    sharpe_ratio,
)
from window_sweep.engine.aggregator import BucketAggregator
from window_sweep.engine.ranking import RankingEngine
from window_sweep.engine.reporter import ReportGenerator, ReportWriter

__all__ = [
    "BestCombination",
    "BucketReport",
    "ComboResult",
    "ComboStats",
    "HalfLifeBucket",
    "HistoricalTrade",
    "MetricsSnapshot",
    "RankingObjective",
    "SweepReport",
    "TradeDirection",
    "TradeSweepResult",
    "WindowConfig",
    "Outcome",
    "classify_outcome",
    "days_to_target",
    "is_win",
    "predicted_roi",
    "prediction_error",
    "sharpe_ratio",
    "BucketAggregator",
    "RankingEngine",
    "ReportGenerator",
    "ReportWriter",
]
