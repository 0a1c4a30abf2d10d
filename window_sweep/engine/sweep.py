"""
WindowSweepEngine — Replays closed trades under every window configuration.

For each trade:
1. Reference half-life once, under the largest window of each candidate set
2. For each (beta, z-score) window pair, in ascending order:
   entry snapshot -> exit beta -> beta drift -> outcome classification
3. One TradeSweepResult with the full combination matrix

Provider calls are strictly sequential. A fixed delay precedes every call and
a longer delay separates trades.
"""

import asyncio
from collections.abc import Sequence
from datetime import datetime

from window_sweep.api.metrics_client import RetryingMetricsClient, SleepFn
from window_sweep.config.schemas import SweepConfig
from window_sweep.engine.classifier import classify_outcome
from window_sweep.engine.models import (
    ComboResult,
    HistoricalTrade,
    MetricsSnapshot,
    TradeSweepResult,
    WindowConfig,
    is_valid_half_life,
)
from window_sweep.persistence.checkpoint import SweepCheckpoint
from window_sweep.logging import get_logger, log_context

logger = get_logger(__name__)

NOT_MEAN_REVERTING = "Spread not mean-reverting"


class WindowSweepEngine:
    """Sequential trade x window-config sweep against the metrics client."""

    def __init__(
        self,
        client: RetryingMetricsClient,
        config: SweepConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        checkpoint: SweepCheckpoint | None = None,
    ) -> None:
        self.client = client
        self.config = config or SweepConfig()
        self.checkpoint = checkpoint
        self._sleep = sleep

    async def sweep(
        self,
        trades: Sequence[HistoricalTrade],
        beta_windows: Sequence[int] | None = None,
        z_score_windows: Sequence[int] | None = None,
    ) -> list[TradeSweepResult]:
        """Sweep every trade over the full window grid, in source order."""
        betas = list(beta_windows) if beta_windows is not None else self.config.beta_windows
        z_scores = list(z_score_windows) if z_score_windows is not None else self.config.z_score_windows
        if not betas or not z_scores:
            raise ValueError("beta_windows and z_score_windows must be non-empty")

        grid = WindowConfig.grid(betas, z_scores)
        reference = WindowConfig(max(betas), max(z_scores))
        expected_keys = {w.key for w in grid}

        run_id = SweepCheckpoint.run_id(grid, reference)
        completed = self.checkpoint.load_completed(run_id) if self.checkpoint else {}

        logger.info(
            "Starting sweep",
            trades=len(trades),
            combinations_per_trade=len(grid),
            reference_window=reference.key,
            resumed=len(completed),
        )

        results: list[TradeSweepResult] = []
        for i, trade in enumerate(trades):
            with log_context(trade_id=trade.trade_id, pair=trade.pair):
                cached = completed.get(trade.trade_id)
                if cached is not None and set(cached.combinations) == expected_keys:
                    logger.info("Trade restored from checkpoint", progress=f"{i + 1}/{len(trades)}")
                    results.append(cached)
                    continue

                logger.info("Sweeping trade", progress=f"{i + 1}/{len(trades)}")
                result = await self.sweep_trade(trade, grid, reference)
                results.append(result)

                if self.checkpoint:
                    self.checkpoint.save_trade(run_id, result)

            if i < len(trades) - 1:
                await self._sleep(self.config.throttle.trade_delay)

        logger.info(
            "Sweep complete",
            trades=len(results),
            failed_cells=sum(len(r.failed_cells()) for r in results),
        )
        return results

    async def sweep_trade(
        self,
        trade: HistoricalTrade,
        grid: Sequence[WindowConfig],
        reference: WindowConfig,
    ) -> TradeSweepResult:
        """Reference half-life plus one ComboResult per window config."""
        half_life, skip_reason = await self._reference_half_life(trade, reference)

        combinations: dict[str, ComboResult] = {}
        for window in grid:
            combinations[window.key] = await self._sweep_cell(trade, window)

        return TradeSweepResult(
            trade=trade,
            half_life=half_life,
            combinations=combinations,
            skip_reason=skip_reason,
        )

    async def _reference_half_life(
        self,
        trade: HistoricalTrade,
        reference: WindowConfig,
    ) -> tuple[float | None, str | None]:
        snapshot = await self._fetch(
            trade, trade.entry_time, reference.beta_window, reference.z_score_window,
        )
        if not snapshot.ok:
            await self._cool_down_if_rate_limited(snapshot, reference)
            logger.warning("Reference half-life unavailable", error=snapshot.error)
            return None, snapshot.detail or snapshot.error

        if not is_valid_half_life(snapshot.half_life_days):
            return snapshot.half_life_days, NOT_MEAN_REVERTING

        return snapshot.half_life_days, None

    async def _sweep_cell(self, trade: HistoricalTrade, window: WindowConfig) -> ComboResult:
        entry = await self._fetch(trade, trade.entry_time, window.beta_window, window.z_score_window)
        if not entry.ok:
            await self._cool_down_if_rate_limited(entry, window)
            logger.warning("Entry metrics failed", combo=window.key, error=entry.error)
            return ComboResult.failed(window, entry.error or "unknown error")

        # Only beta is resampled at exit; the trade's stored z-scores drive the outcome
        exit_ = await self._fetch(trade, trade.exit_time, window.beta_window, window.beta_window)
        error = None
        if not exit_.ok:
            await self._cool_down_if_rate_limited(exit_, window)
            logger.warning("Exit beta failed", combo=window.key, error=exit_.error)
            error = f"exit beta: {exit_.error}"

        beta_at_entry = entry.beta
        beta_at_exit = exit_.beta
        beta_drift = (
            abs(beta_at_exit - beta_at_entry)
            if beta_at_entry is not None and beta_at_exit is not None
            else None
        )

        outcome = classify_outcome(trade, entry)

        return ComboResult(
            window=window,
            beta_at_entry=beta_at_entry,
            beta_at_exit=beta_at_exit,
            beta_drift=beta_drift,
            predicted_roi=outcome.predicted_roi,
            actual_roi=outcome.actual_roi,
            prediction_error=outcome.prediction_error,
            abs_error=outcome.abs_error,
            win=outcome.win,
            days_to_target=outcome.days_to_target,
            error=error,
        )

    async def _fetch(
        self,
        trade: HistoricalTrade,
        at_time: datetime,
        beta_window: int,
        z_score_window: int,
    ) -> MetricsSnapshot:
        await self._sleep(self.config.throttle.call_delay)
        return await self.client.fetch_metrics(
            trade.asset_a, trade.asset_b, at_time, beta_window, z_score_window,
        )

    async def _cool_down_if_rate_limited(self, snapshot: MetricsSnapshot, window: WindowConfig) -> None:
        if snapshot.rate_limited:
            cooldown = self.config.retry.rate_limit_cooldown
            logger.warning("Rate limited, cooling down", combo=window.key, wait_s=cooldown)
            await self._sleep(cooldown)
