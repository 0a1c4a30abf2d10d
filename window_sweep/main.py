"""
Main entry point for the rolling-window sweep.

Loads settings from the environment, connects the trade history store and
the metrics provider, runs the sweep and writes the report.

Usage:
    python -m window_sweep
    SWEEP_BETA_WINDOWS=7,14 SWEEP_TRADE_LIMIT=20 window-sweep
"""

import asyncio
import sys
from pathlib import Path

from window_sweep.api.exceptions import ConfigurationError, TradeSourceError
from window_sweep.api.metrics_client import RetryingMetricsClient, RetryPolicy
from window_sweep.api.provider import HttpMetricsProvider
from window_sweep.config.settings import SweepSettings, load_settings, load_sweep_config
from window_sweep.database.trade_source import SqlTradeSource
from window_sweep.engine.models import SweepReport
from window_sweep.engine.reporter import ReportWriter
from window_sweep.engine.system import SweepSystem
from window_sweep.persistence.checkpoint import SweepCheckpoint
from window_sweep.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_from_settings(settings: SweepSettings) -> SweepReport | None:
    """Wire the pipeline from settings and run it once."""
    config = load_sweep_config(settings)

    trade_source = SqlTradeSource(
        database_url=settings.database_url,
        limit=settings.trade_limit,
        start_date=settings.start_date,
        end_date=settings.end_date,
    )
    checkpoint = SweepCheckpoint(settings.checkpoint_dir) if settings.checkpoint_dir else None

    try:
        async with HttpMetricsProvider(
            settings.metrics_api_url,
            api_key=settings.metrics_api_key,
            timeout=settings.metrics_timeout,
        ) as provider:
            client = RetryingMetricsClient(provider, policy=RetryPolicy.from_config(config.retry))
            system = SweepSystem(
                trade_source,
                client,
                config=config,
                writer=ReportWriter(settings.report_dir),
                checkpoint=checkpoint,
            )
            return await system.run()
    finally:
        await trade_source.close()


def main() -> int:
    """Console entry point. Returns the process exit code."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging(log_to_file=False)
        logger.error("Sweep aborted", error=str(e))
        return 1

    setup_logging(
        log_level=settings.log_level,
        log_dir=Path(settings.log_dir),
        json_logs=settings.json_logs,
    )

    try:
        asyncio.run(run_from_settings(settings))
    except (ConfigurationError, TradeSourceError) as e:
        logger.error("Sweep aborted", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Sweep interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
