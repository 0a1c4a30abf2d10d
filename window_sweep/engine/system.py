"""
SweepSystem — End-to-end rolling-window backtest pipeline.

Orchestrates:
1. Closed trade loading (TradeSource) — failure aborts the run
2. Window sweep (WindowSweepEngine via RetryingMetricsClient)
3. Bucketing, aggregation and ranking (ReportGenerator)
4. Report + JSON export (ReportWriter), then checkpoint cleanup
"""

import asyncio
import time

from window_sweep.api.exceptions import TradeSourceError
from window_sweep.api.metrics_client import RetryingMetricsClient, SleepFn
from window_sweep.config.schemas import SweepConfig
from window_sweep.database.trade_source import TradeSource
from window_sweep.engine.aggregator import BucketAggregator
from window_sweep.engine.models import HistoricalTrade, SweepReport
from window_sweep.engine.ranking import RankingEngine
from window_sweep.engine.reporter import ReportGenerator, ReportWriter
from window_sweep.engine.sweep import WindowSweepEngine
from window_sweep.persistence.checkpoint import SweepCheckpoint
from window_sweep.logging import get_logger

logger = get_logger(__name__)


class SweepSystem:
    """End-to-end sweep: trades -> sweep -> aggregate -> rank -> report."""

    def __init__(
        self,
        trade_source: TradeSource,
        client: RetryingMetricsClient,
        config: SweepConfig | None = None,
        writer: ReportWriter | None = None,
        checkpoint: SweepCheckpoint | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config or SweepConfig()
        self.trade_source = trade_source
        self.client = client
        self.engine = WindowSweepEngine(
            client,
            config=self.config,
            sleep=sleep,
            checkpoint=checkpoint,
        )
        self.generator = ReportGenerator(
            aggregator=BucketAggregator(self.config.bucket_boundaries),
            ranking=RankingEngine(),
        )
        self.writer = writer
        self.checkpoint = checkpoint

    async def load_trades(self) -> list[HistoricalTrade]:
        """Load closed trades; any failure is run-fatal."""
        try:
            return await self.trade_source.list_closed_trades()
        except TradeSourceError:
            raise
        except Exception as e:
            raise TradeSourceError(f"Cannot load closed trades: {e}") from e

    async def run(self) -> SweepReport | None:
        """Run the full pipeline. Returns None when there are no closed trades."""
        start_time = time.perf_counter()

        trades = await self.load_trades()
        if not trades:
            logger.warning("No closed trades found")
            return None

        logger.info(
            "Starting rolling window backtest",
            trades=len(trades),
            beta_windows=self.config.beta_windows,
            z_score_windows=self.config.z_score_windows,
            combinations_per_trade=len(self.config.window_grid),
        )

        results = await self.engine.sweep(trades)
        report = self.generator.build(results)

        if self.writer:
            self.writer.write(report)

        # Checkpoint outlives the sweep until the report is written
        if self.checkpoint:
            self.checkpoint.cleanup(
                SweepCheckpoint.run_id(self.config.window_grid, self.config.reference_window)
            )

        logger.info(
            "Rolling window backtest complete",
            trades=len(results),
            usable=report.usable_count,
            skipped=len(report.skipped),
            provider=self.client.get_statistics(),
            duration_s=round(time.perf_counter() - start_time, 2),
        )
        return report
