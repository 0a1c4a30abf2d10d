"""
ReportGenerator — Aggregated and ranked sweep results as a markdown report.

Generates:
- SweepReport from raw TradeSweepResults (bucketing, stats, ranking)
- Markdown document: summary, skipped trades, per-bucket best/all tables,
  per-cell error listing
- JSON data export of per-trade results and per-bucket stats

Rendering is deterministic: identical results give identical output apart
from the ``Generated:`` header.
"""

import json
import math
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from window_sweep.engine.aggregator import BucketAggregator
from window_sweep.engine.models import (
    BestCombination,
    BucketReport,
    ComboStats,
    RankingObjective,
    SweepReport,
    TradeSweepResult,
)
from window_sweep.engine.ranking import RankingEngine
from window_sweep.logging import get_logger

logger = get_logger(__name__)

NO_HALF_LIFE_REASON = "Spread not mean-reverting"

_BEST_LABELS: dict[RankingObjective, str] = {
    RankingObjective.BETA_DRIFT: "Lowest Beta Drift",
    RankingObjective.PREDICTION_ERROR: "Best Prediction Accuracy",
    RankingObjective.DAYS_TO_TARGET: "Fastest to Target",
    RankingObjective.SHARPE: "Best Sharpe Ratio",
}


def _fmt(value: float | None, fmt: str, suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{value:{fmt}}{suffix}"


def _cell(text: str) -> str:
    """Make arbitrary text safe inside a markdown table cell."""
    return " ".join(text.split()).replace("|", "\\|")


def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


class ReportGenerator:
    """Builds, renders and exports sweep reports."""

    def __init__(
        self,
        aggregator: BucketAggregator | None = None,
        ranking: RankingEngine | None = None,
    ) -> None:
        self.aggregator = aggregator or BucketAggregator()
        self.ranking = ranking or RankingEngine()

    def build(
        self,
        results: Sequence[TradeSweepResult],
        generated_at: datetime | None = None,
    ) -> SweepReport:
        """Bucket, aggregate and rank the results."""
        grouped = self.aggregator.bucket_trades(results)
        aggregated = self.aggregator.aggregate(results)

        buckets = []
        for bucket in self.aggregator.buckets:
            stats = aggregated.get(bucket.label, {})
            buckets.append(BucketReport(
                bucket=bucket,
                trade_count=len(grouped[bucket.label]),
                stats=stats,
                best=self.ranking.rank(stats),
            ))

        return SweepReport(
            generated_at=generated_at or datetime.now(timezone.utc),
            results=list(results),
            buckets=buckets,
            skipped=self.aggregator.skipped(results),
        )

    # =========================================================================
    # Markdown
    # =========================================================================

    def render_markdown(self, report: SweepReport) -> str:
        lines: list[str] = [
            "# Rolling Beta/Z-Score Window Backtest",
            "",
            f"Generated: {report.generated_at.isoformat()}",
            "",
        ]
        lines += self._render_summary(report)

        for bucket_report in report.buckets:
            if bucket_report.trade_count == 0:
                continue
            lines += self._render_bucket(bucket_report)

        lines += self._render_errors(report)

        return "\n".join(lines) + "\n"

    def _render_summary(self, report: SweepReport) -> list[str]:
        lines = [
            "## Summary",
            "",
            f"Total trades analyzed: {len(report.results)}",
            f"Trades with valid half-life: {report.usable_count}",
            f"Trades skipped (no half-life): {len(report.skipped)}",
            "",
        ]

        if report.skipped:
            lines += [
                "### Skipped Trades (No Valid Half-Life)",
                "",
                "| Pair | Reason |",
                "|------|--------|",
            ]
            for result in report.skipped:
                reason = result.skip_reason or NO_HALF_LIFE_REASON
                lines.append(f"| {_cell(result.trade.pair)} | {_cell(reason)} |")
            lines.append("")

        return lines

    def _render_bucket(self, bucket_report: BucketReport) -> list[str]:
        lines = [
            f"## Half-Life Bucket: {bucket_report.bucket.label}",
            "",
            f"Trades in bucket: {bucket_report.trade_count}",
            "",
            "### Best Combinations",
            "",
            "| Metric | Beta Win | Z-Score Win | Value |",
            "|--------|----------|-------------|-------|",
        ]
        for best in bucket_report.best:
            lines.append(self._render_best(best))

        lines += [
            "",
            "### All Combinations",
            "",
            "| Beta Win | Z-Score Win | Trades | Beta Drift | Avg Abs Error | "
            "Avg Days to Target | Win Rate | Avg Actual ROI | Sharpe |",
            "|----------|-------------|--------|------------|---------------|"
            "--------------------|----------|----------------|--------|",
        ]
        for stats in sorted(bucket_report.stats.values(), key=lambda s: s.window):
            lines.append(self._render_stats_row(stats))
        lines.append("")

        return lines

    @staticmethod
    def _render_best(best: BestCombination) -> str:
        if best.objective == RankingObjective.BETA_DRIFT:
            value = f"{best.value:.4f}"
        elif best.objective == RankingObjective.PREDICTION_ERROR:
            value = f"{best.value:.2f}% error"
        elif best.objective == RankingObjective.DAYS_TO_TARGET:
            value = f"{best.value:.1f} days"
        else:
            value = f"{best.value:.2f}"
        return (
            f"| **{_BEST_LABELS[best.objective]}** | {best.window.beta_window}d | "
            f"{best.window.z_score_window}d | {value} |"
        )

    @staticmethod
    def _render_stats_row(stats: ComboStats) -> str:
        cells = [
            f"{stats.window.beta_window}d",
            f"{stats.window.z_score_window}d",
            str(stats.count),
            _fmt(stats.avg_beta_drift, ".4f"),
            _fmt(stats.avg_abs_error, ".2f", "%"),
            _fmt(stats.avg_days_to_target, ".1f", "d"),
            _fmt(stats.win_rate, ".1f", "%"),
            _fmt(stats.avg_actual_roi, ".2f", "%"),
            _fmt(stats.sharpe_actual, ".2f"),
        ]
        return "| " + " | ".join(cells) + " |"

    @staticmethod
    def _render_errors(report: SweepReport) -> list[str]:
        failed = [
            (result, combo)
            for result in report.results
            for combo in result.failed_cells()
        ]
        if not failed:
            return []

        lines = [
            "## Cell Errors",
            "",
            f"Failed cells: {len(failed)}",
            "",
            "| Pair | Beta Win | Z-Score Win | Error |",
            "|------|----------|-------------|-------|",
        ]
        for result, combo in failed:
            lines.append(
                f"| {_cell(result.trade.pair)} | {combo.window.beta_window}d | "
                f"{combo.window.z_score_window}d | {_cell(combo.error or '')} |"
            )
        lines.append("")
        return lines

    # =========================================================================
    # JSON export
    # =========================================================================

    def export_json(self, report: SweepReport) -> str:
        """Raw results and stats for further analysis."""
        data = {
            "generated": report.generated_at.isoformat(),
            "total_trades": len(report.results),
            "usable_trades": report.usable_count,
            "skipped_trades": [
                {
                    "trade_id": r.trade.trade_id,
                    "pair": r.trade.pair,
                    "reason": r.skip_reason or NO_HALF_LIFE_REASON,
                }
                for r in report.skipped
            ],
            "buckets": [
                {
                    "bucket": b.bucket.label,
                    "trade_count": b.trade_count,
                    "best": [best.to_dict() for best in b.best],
                    "stats": [s.to_dict() for s in sorted(b.stats.values(), key=lambda s: s.window)],
                }
                for b in report.buckets
            ],
            "trades": [r.to_dict() for r in report.results],
        }
        return json.dumps(_json_safe(data), indent=2)


class ReportWriter:
    """Writes the markdown report and its JSON companion to a directory."""

    def __init__(self, report_dir: str = "backtest_reports", generator: ReportGenerator | None = None) -> None:
        self.report_dir = Path(report_dir)
        self.generator = generator or ReportGenerator()

    def write(self, report: SweepReport) -> tuple[Path, Path]:
        self.report_dir.mkdir(parents=True, exist_ok=True)

        stamp = report.generated_at.strftime("%Y-%m-%dT%H-%M-%S")
        report_path = self.report_dir / f"rolling_windows_backtest_{stamp}.md"
        json_path = report_path.with_suffix(".json")

        report_path.write_text(self.generator.render_markdown(report), encoding="utf-8")
        json_path.write_text(self.generator.export_json(report), encoding="utf-8")

        logger.info("Report saved", report=str(report_path), data=str(json_path))
        return report_path, json_path
