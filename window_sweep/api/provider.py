"""
Metrics provider interface and HTTP implementation.

The provider computes beta, z-score, spread standard deviation and half-life
for an asset pair at a point in time under a (beta, z-score) window pair. It
is idempotent but unreliable: it may fail transiently or rate limit.
"""

import asyncio
from typing import Any, Protocol

import aiohttp

from window_sweep.api.exceptions import (
    InvalidRequestError,
    MetricsProviderError,
    NetworkError,
    RateLimitError,
)
from window_sweep.logging import get_logger

logger = get_logger(__name__)

# Provider payload keys -> snapshot field names
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "beta": ("beta",),
    "z_score": ("z_score", "zScore"),
    "spread_std_dev": ("spread_std_dev", "stdDevSpread"),
    "half_life_days": ("half_life_days", "halfLife"),
}


class MetricsProvider(Protocol):
    """Pair analytics service consumed by the metrics client."""

    async def get_metrics(
        self,
        asset_a: str,
        asset_b: str,
        at_epoch_millis: int,
        beta_window_days: int,
        z_score_window_days: int,
    ) -> dict[str, Any]:
        """Return ``{beta, z_score, spread_std_dev, half_life_days}`` or ``{error}``."""
        ...


def normalize_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Map a provider payload onto snapshot field names."""
    if data.get("error"):
        return {"error": str(data["error"])}

    normalized: dict[str, Any] = {}
    for field_name, aliases in _FIELD_ALIASES.items():
        value = None
        for alias in aliases:
            if data.get(alias) is not None:
                value = float(data[alias])
                break
        normalized[field_name] = value
    return normalized


class HttpMetricsProvider:
    """
    Metrics provider backed by the pair-analysis HTTP endpoint.

    Status mapping:
    - 429 -> RateLimitError
    - other 4xx -> InvalidRequestError
    - 5xx, connection errors, timeouts -> NetworkError
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._request_count = 0

        logger.info("Initializing HttpMetricsProvider", base_url=self.base_url)

    async def initialize(self) -> None:
        """Open the HTTP session."""
        if not self._session:
            headers = {"Accept": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._session = aiohttp.ClientSession(headers=headers, timeout=self._timeout)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
            logger.info("HttpMetricsProvider closed", total_requests=self._request_count)

    async def __aenter__(self) -> "HttpMetricsProvider":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def get_metrics(
        self,
        asset_a: str,
        asset_b: str,
        at_epoch_millis: int,
        beta_window_days: int,
        z_score_window_days: int,
    ) -> dict[str, Any]:
        if not self._session:
            raise MetricsProviderError("Provider not initialized")

        self._request_count += 1
        url = f"{self.base_url}/pair-metrics"
        params = {
            "asset_a": asset_a,
            "asset_b": asset_b,
            "at": str(at_epoch_millis),
            "beta_window": str(beta_window_days),
            "z_score_window": str(z_score_window_days),
        }

        logger.debug("metrics_request", url=url, **params)

        try:
            async with self._session.get(url, params=params) as response:
                if response.status == 429:
                    raise RateLimitError(f"HTTP 429: rate limit exceeded for {asset_a}/{asset_b}")
                if 400 <= response.status < 500:
                    body = await response.text()
                    raise InvalidRequestError(f"HTTP {response.status}: {body[:200]}")
                if response.status >= 500:
                    raise NetworkError(f"HTTP {response.status}: provider unavailable")
                data = await response.json()
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request timed out after {self._timeout.total}s") from e

        if not isinstance(data, dict):
            raise NetworkError("Malformed provider response")

        return normalize_payload(data)
