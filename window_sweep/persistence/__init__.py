"""Persistence — sweep checkpoints."""

from window_sweep.persistence.checkpoint import SweepCheckpoint

__all__ = ["SweepCheckpoint"]
