"""
Structured logging for sweep runs.

Console output for progress, rotating files for the sweep log and errors.
Per-trade context (pair, trade id) is bound through ``log_context`` so every
retry warning and cell error carries the trade it belongs to.
"""

import logging
import logging.handlers
import sys
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

SWEEP_LOG_FILE = "sweep.log"
ERROR_LOG_FILE = "error.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Chatty third-party loggers held at WARNING
QUIET_LOGGERS = ("asyncio", "aiohttp", "aiosqlite", "sqlalchemy.engine")


def _rotating_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def _renderer(json_logs: bool, colors: bool) -> Processor:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=colors,
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | None = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    json_logs: bool = False,
) -> None:
    """
    Configure structlog and the stdlib handlers behind it.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for sweep.log / error.log (default: ./logs)
        log_to_console: Echo events to stdout
        log_to_file: Write rotating log files
        json_logs: Render events as JSON instead of key=value
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = []

    if log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        handlers.append(console)

    if log_to_file:
        log_dir = log_dir or Path("logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(_rotating_handler(log_dir / SWEEP_LOG_FILE, level))
        handlers.append(_rotating_handler(log_dir / ERROR_LOG_FILE, logging.ERROR))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _renderer(json_logs, colors=log_to_console and not json_logs),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance for a module."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a ``logger`` named after the class."""

    @property
    def logger(self) -> structlog.BoundLogger:
        return get_logger(type(self).__name__)


def log_context(**context: Any) -> AbstractContextManager[None]:
    """Bind key/value context to every event logged inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(**context)
