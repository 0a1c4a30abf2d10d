"""
RetryingMetricsClient — the only component that talks to the metrics provider.

Failures are classified by a small RetryPolicy:
- transient: retried after backoff_base * attempt number seconds
- rate_limited: retried after a fixed cooldown
- fatal: not retried

Retries are driven by tenacity with an injectable sleep. Nothing raises out
of fetch_metrics(); every failure comes back as an error snapshot.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, RetryError, stop_after_attempt

from window_sweep.api.exceptions import (
    InvalidRequestError,
    MetricsProviderError,
    RateLimitError,
)
from window_sweep.api.provider import MetricsProvider
from window_sweep.config.schemas import RetryConfig
from window_sweep.engine.models import MAX_RETRIES_EXCEEDED, MetricsSnapshot
from window_sweep.logging import LoggerMixin

RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")

SleepFn = Callable[[float], Awaitable[Any]]


class ErrorKind(str, Enum):
    """Retry classification of a provider failure."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    FATAL = "fatal"


def is_rate_limit_message(message: str | None) -> bool:
    if not message:
        return False
    text = message.lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget, error classification and wait computation."""

    max_attempts: int = 3
    rate_limit_cooldown: float = 10.0
    backoff_base: float = 2.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            rate_limit_cooldown=config.rate_limit_cooldown,
            backoff_base=config.backoff_base,
        )

    @staticmethod
    def classify(error: BaseException | None) -> ErrorKind:
        if isinstance(error, RateLimitError):
            return ErrorKind.RATE_LIMITED
        if isinstance(error, InvalidRequestError):
            return ErrorKind.FATAL
        if is_rate_limit_message(str(error)):
            return ErrorKind.RATE_LIMITED
        return ErrorKind.TRANSIENT

    def should_retry(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        return self.classify(outcome.exception()) != ErrorKind.FATAL

    def wait_seconds(self, retry_state: RetryCallState) -> float:
        """Cooldown after a rate limit, otherwise backoff_base * attempt number."""
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        if self.classify(error) == ErrorKind.RATE_LIMITED:
            return self.rate_limit_cooldown
        return self.backoff_base * retry_state.attempt_number


class RetryingMetricsClient(LoggerMixin):
    """
    Bounded-retry wrapper around a MetricsProvider.

    Features:
    - Rate-limit cooldown separate from ordinary backoff
    - Provider error payloads and exceptions handled the same way
    - Error-as-data: exhausted retries yield "max retries exceeded"
    - Request statistics
    """

    def __init__(
        self,
        provider: MetricsProvider,
        policy: RetryPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

        self._request_count = 0
        self._error_count = 0
        self._rate_limit_hits = 0
        self._last_error: str | None = None

    async def fetch_metrics(
        self,
        asset_a: str,
        asset_b: str,
        at_time: datetime,
        beta_window: int,
        z_score_window: int,
    ) -> MetricsSnapshot:
        """Fetch one snapshot; never raises for provider failures."""
        at_ms = int(at_time.timestamp() * 1000)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self.policy.wait_seconds,
            retry=self.policy.should_retry,
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )

        payload: dict[str, Any] = {}
        try:
            async for attempt in retrying:
                with attempt:
                    payload = await self._call(asset_a, asset_b, at_ms, beta_window, z_score_window)
        except RetryError as e:
            last = e.last_attempt.exception()
            self.logger.warning(
                "Metrics fetch gave up",
                pair=f"{asset_a}/{asset_b}",
                beta_window=beta_window,
                z_score_window=z_score_window,
                attempts=self.policy.max_attempts,
                last_error=str(last),
            )
            return MetricsSnapshot.failed(
                MAX_RETRIES_EXCEEDED,
                detail=str(last),
                rate_limited=self.policy.classify(last) == ErrorKind.RATE_LIMITED,
            )
        except MetricsProviderError as e:
            self.logger.warning(
                "Metrics request rejected",
                pair=f"{asset_a}/{asset_b}",
                beta_window=beta_window,
                z_score_window=z_score_window,
                error=str(e),
            )
            return MetricsSnapshot.failed(str(e), detail=str(e))

        return MetricsSnapshot(
            beta=payload.get("beta"),
            z_score=payload.get("z_score"),
            spread_std_dev=payload.get("spread_std_dev"),
            half_life_days=payload.get("half_life_days"),
        )

    async def _call(
        self,
        asset_a: str,
        asset_b: str,
        at_ms: int,
        beta_window: int,
        z_score_window: int,
    ) -> dict[str, Any]:
        """One provider call; error payloads are raised as provider errors."""
        self._request_count += 1
        try:
            payload = await self.provider.get_metrics(
                asset_a, asset_b, at_ms, beta_window, z_score_window,
            )
        except MetricsProviderError as e:
            self._on_error(e)
            raise
        except Exception as e:
            wrapped = self._error_from_message(str(e) or type(e).__name__)
            self._on_error(wrapped)
            raise wrapped from e

        if payload.get("error"):
            error = self._error_from_message(str(payload["error"]))
            self._on_error(error)
            raise error

        return payload

    @staticmethod
    def _error_from_message(message: str) -> MetricsProviderError:
        if is_rate_limit_message(message):
            return RateLimitError(message)
        return MetricsProviderError(message)

    def _on_error(self, error: MetricsProviderError) -> None:
        self._error_count += 1
        self._last_error = str(error)
        if self.policy.classify(error) == ErrorKind.RATE_LIMITED:
            self._rate_limit_hits += 1

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        self.logger.warning(
            "Metrics fetch failed, retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self.policy.max_attempts,
            kind=self.policy.classify(error).value,
            wait_s=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error),
        )

    def get_statistics(self) -> dict[str, Any]:
        return {
            "request_count": self._request_count,
            "error_count": self._error_count,
            "rate_limit_hits": self._rate_limit_hits,
            "last_error": self._last_error,
        }
