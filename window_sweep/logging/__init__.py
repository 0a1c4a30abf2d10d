"""Structured logging for the window sweep backtester."""

from window_sweep.logging.logger import get_logger, setup_logging, LoggerMixin, log_context

__all__ = ["get_logger", "setup_logging", "LoggerMixin", "log_context"]
