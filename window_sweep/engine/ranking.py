"""
RankingEngine — Picks the best window configuration per bucket and objective.

Objectives:
- lowest mean beta drift (most stable hedge ratio)
- lowest mean absolute prediction error (most accurate ROI model)
- lowest mean days-to-target (fastest convergence, winners only)
- highest Sharpe of actual returns

Ties go to the smaller window config (beta, then z-score).
"""

from collections.abc import Callable, Mapping

from window_sweep.engine.models import BestCombination, ComboStats, RankingObjective

# objective -> (metric getter, higher is better)
OBJECTIVE_METRICS: dict[RankingObjective, tuple[Callable[[ComboStats], float | None], bool]] = {
    RankingObjective.BETA_DRIFT: (lambda s: s.avg_beta_drift, False),
    RankingObjective.PREDICTION_ERROR: (lambda s: s.avg_abs_error, False),
    RankingObjective.DAYS_TO_TARGET: (lambda s: s.avg_days_to_target, False),
    RankingObjective.SHARPE: (lambda s: s.sharpe_actual, True),
}


class RankingEngine:
    """Selects one best combination per objective from a bucket's stats."""

    def best_for(
        self,
        stats: Mapping[str, ComboStats],
        objective: RankingObjective,
    ) -> BestCombination | None:
        metric, higher_is_better = OBJECTIVE_METRICS[objective]

        eligible = [s for s in stats.values() if metric(s) is not None]
        if not eligible:
            return None

        def sort_key(s: ComboStats) -> tuple[float, int, int]:
            value = float(metric(s))  # type: ignore[arg-type]
            return (
                -value if higher_is_better else value,
                s.window.beta_window,
                s.window.z_score_window,
            )

        best = min(eligible, key=sort_key)
        return BestCombination(
            objective=objective,
            window=best.window,
            value=float(metric(best)),  # type: ignore[arg-type]
        )

    def rank(self, stats: Mapping[str, ComboStats]) -> list[BestCombination]:
        """Best combination for every objective that has an eligible row."""
        ranked = []
        for objective in RankingObjective:
            best = self.best_for(stats, objective)
            if best is not None:
                ranked.append(best)
        return ranked
