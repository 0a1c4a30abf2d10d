"""
SweepCheckpoint — Save/resume per-trade sweep results.

Each finished TradeSweepResult is appended as one JSON line to a file named
after the run id. An interrupted sweep reloads those trades instead of
querying the metrics provider for them again.
"""

import hashlib
import json
from pathlib import Path

from window_sweep.engine.models import TradeSweepResult, WindowConfig
from window_sweep.logging import get_logger

logger = get_logger(__name__)

CHECKPOINT_SUFFIX = ".jsonl"


class SweepCheckpoint:
    """
    Append-only JSONL store of swept trades, one file per run id.

    The run id hashes the window grid and reference window, so a checkpoint
    is only picked up again by a sweep over the same matrix.
    """

    def __init__(self, checkpoint_dir: str = "data/checkpoints") -> None:
        self.checkpoint_dir = Path(checkpoint_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

    def get_checkpoint_path(self, run_id: str) -> Path:
        return self.checkpoint_dir / f"{run_id}{CHECKPOINT_SUFFIX}"

    def save_trade(self, run_id: str, result: TradeSweepResult) -> None:
        """Append one swept trade."""
        record = {"trade_id": result.trade.trade_id, "result": result.to_dict()}
        with self.get_checkpoint_path(run_id).open("a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")

        logger.debug("Trade checkpointed", run_id=run_id, trade_id=result.trade.trade_id)

    def load_completed(self, run_id: str) -> dict[str, TradeSweepResult]:
        """Swept trades by trade id; unreadable lines are skipped."""
        path = self.get_checkpoint_path(run_id)
        if not path.exists():
            return {}

        restored: dict[str, TradeSweepResult] = {}
        skipped_lines = 0
        for raw in path.read_text(encoding="utf-8").splitlines():
            if not raw.strip():
                continue
            try:
                record = json.loads(raw)
                restored[record["trade_id"]] = TradeSweepResult.from_dict(record["result"])
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                skipped_lines += 1

        if skipped_lines:
            logger.warning("Corrupt checkpoint lines skipped", run_id=run_id, lines=skipped_lines)
        logger.info("Checkpoint loaded", run_id=run_id, trades=len(restored))
        return restored

    def cleanup(self, run_id: str) -> None:
        """Drop the checkpoint once the run has finished."""
        path = self.get_checkpoint_path(run_id)
        if path.exists():
            path.unlink()
            logger.info("Checkpoint removed", run_id=run_id)

    @staticmethod
    def run_id(grid: list[WindowConfig], reference: WindowConfig) -> str:
        """Short sha256 of the grid keys and reference window."""
        shape = json.dumps(
            {"grid": [w.key for w in grid], "reference": reference.key},
            sort_keys=True,
        )
        return hashlib.sha256(shape.encode()).hexdigest()[:12]
