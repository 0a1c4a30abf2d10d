"""
Window Sweep — Rolling-window parameter-sweep backtester for pair trades.

Provides:
- Replay of closed statistical-arbitrage trades under a grid of
  (beta window, z-score window) configurations
- Rate-limit aware metrics client with bounded retry
- Win/loss, predicted ROI and Sharpe classification
- Half-life bucket aggregation and per-objective ranking
- Markdown report and JSON data export
- Sweep checkpointing for resumable runs
"""

__version__ = "1.0.0"
