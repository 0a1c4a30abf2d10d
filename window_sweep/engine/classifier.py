"""
Outcome classification — pure functions over a trade's realized z-scores.

A trade is a win when the z-score decayed to at most half its entry magnitude
(floored at 0.5). Predicted ROI uses an exponential model of spread
convergence: |exp(z_change * spread_std_dev) - 1| * 100.
"""

import math
from dataclasses import dataclass

import numpy as np

from window_sweep.engine.models import HistoricalTrade, MetricsSnapshot, TradeDirection

WIN_TARGET_FLOOR = 0.5
WIN_TARGET_RATIO = 0.5
TRADING_DAYS_PER_YEAR = 365


def is_win(entry_z: float | None, exit_z: float | None) -> bool | None:
    """Target is max(0.5, |entry_z| * 0.5); None when either z-score is missing."""
    if entry_z is None or exit_z is None:
        return None
    target = max(WIN_TARGET_FLOOR, abs(entry_z) * WIN_TARGET_RATIO)
    return abs(exit_z) <= target


def predicted_roi(
    entry_z: float | None,
    exit_z: float | None,
    spread_std_dev: float | None,
    direction: TradeDirection | str = TradeDirection.LONG,
) -> float | None:
    """Predicted return in percent; 0 when the signal did not decay.

    Direction does not change the magnitude of the model; it is accepted so
    callers can pass the trade through unchanged.
    """
    if not spread_std_dev or entry_z is None or exit_z is None:
        return None

    entry_abs = abs(entry_z)
    exit_abs = abs(exit_z)
    if entry_abs <= exit_abs:
        return 0.0

    spread_change = (entry_abs - exit_abs) * spread_std_dev
    return abs(math.exp(spread_change) - 1) * 100


def prediction_error(predicted: float | None, actual: float | None) -> float | None:
    """Signed error, predicted minus actual."""
    if predicted is None or actual is None:
        return None
    return predicted - actual


def days_to_target(win: bool | None, duration_days: float) -> float | None:
    """Realized holding time, only for winning trades."""
    return duration_days if win is True else None


def sharpe_ratio(returns: list[float]) -> float | None:
    """Annualized Sharpe, treating each trade return as one daily sample.

    Uses the population standard deviation. None for an empty series or zero
    dispersion.
    """
    if len(returns) == 0:
        return None

    arr = np.asarray(returns, dtype=float)
    # A constant series can leave a rounding-error std instead of an exact 0
    if np.all(arr == arr[0]):
        return None
    return float(arr.mean()) / float(arr.std()) * math.sqrt(TRADING_DAYS_PER_YEAR)


@dataclass(frozen=True)
class Outcome:
    """Classifier output for one (trade, window config) cell."""

    predicted_roi: float | None
    actual_roi: float | None
    prediction_error: float | None
    abs_error: float | None
    win: bool | None
    days_to_target: float | None


def classify_outcome(trade: HistoricalTrade, entry: MetricsSnapshot) -> Outcome:
    """Combine the trade's stored z-scores with the entry snapshot's spread std-dev."""
    predicted = predicted_roi(
        trade.entry_z_score,
        trade.exit_z_score,
        entry.spread_std_dev,
        trade.direction,
    )
    error = prediction_error(predicted, trade.total_return_pct)
    win = is_win(trade.entry_z_score, trade.exit_z_score)

    return Outcome(
        predicted_roi=predicted,
        actual_roi=trade.total_return_pct,
        prediction_error=error,
        abs_error=abs(error) if error is not None else None,
        win=win,
        days_to_target=days_to_target(win, trade.duration_days),
    )
