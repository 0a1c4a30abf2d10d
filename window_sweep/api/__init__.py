"""Metrics provider access: provider interface, retrying client, exceptions"""

from window_sweep.api.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    MetricsProviderError,
    NetworkError,
    RateLimitError,
    TradeSourceError,
)
from window_sweep.api.provider import HttpMetricsProvider, MetricsProvider
from window_sweep.api.metrics_client import ErrorKind, RetryingMetricsClient, RetryPolicy

__all__ = [
    "HttpMetricsProvider",
    "MetricsProvider",
    "RetryingMetricsClient",
    "RetryPolicy",
    "ErrorKind",
    "MetricsProviderError",
    "RateLimitError",
    "NetworkError",
    "InvalidRequestError",
    "TradeSourceError",
    "ConfigurationError",
]
