"""Shared fixtures: fake metrics provider, recording sleep, trade factory."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from window_sweep.api.metrics_client import RetryingMetricsClient, RetryPolicy
from window_sweep.config.schemas import SweepConfig, ThrottleConfig
from window_sweep.engine.models import HistoricalTrade, TradeDirection

ENTRY_TIME = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


class RecordingSleep:
    """Async sleep stand-in that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeProvider:
    """
    Metrics provider driven by a responder function.

    The responder gets (asset_a, asset_b, at_ms, beta_window, z_score_window)
    and returns a payload dict or raises. Every call is recorded.
    """

    def __init__(self, responder: Callable[..., dict[str, Any]] | None = None) -> None:
        self.responder = responder or (lambda *args: default_payload())
        self.calls: list[tuple[str, str, int, int, int]] = []

    async def get_metrics(
        self,
        asset_a: str,
        asset_b: str,
        at_epoch_millis: int,
        beta_window_days: int,
        z_score_window_days: int,
    ) -> dict[str, Any]:
        call = (asset_a, asset_b, at_epoch_millis, beta_window_days, z_score_window_days)
        self.calls.append(call)
        return self.responder(*call)


class ScriptedProvider(FakeProvider):
    """Returns (or raises) the scripted items in order, then repeats the last one."""

    def __init__(self, script: list[Any]) -> None:
        self.script = list(script)
        super().__init__(self._next)

    def _next(self, *args: Any) -> dict[str, Any]:
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


def default_payload(
    beta: float = 1.0,
    z_score: float = 2.0,
    spread_std_dev: float = 0.02,
    half_life_days: float = 5.0,
) -> dict[str, Any]:
    return {
        "beta": beta,
        "z_score": z_score,
        "spread_std_dev": spread_std_dev,
        "half_life_days": half_life_days,
    }


def make_trade(
    trade_id: str = "t1",
    pair: str = "BTC/ETH",
    entry_z: float | None = 2.2,
    exit_z: float | None = 0.6,
    total_return_pct: float = 1.8,
    duration_days: float = 4.0,
    entry_time: datetime = ENTRY_TIME,
    direction: TradeDirection = TradeDirection.LONG,
) -> HistoricalTrade:
    asset_a, asset_b = pair.split("/")
    return HistoricalTrade(
        trade_id=trade_id,
        pair=pair,
        asset_a=asset_a,
        asset_b=asset_b,
        entry_time=entry_time,
        exit_time=entry_time + timedelta(days=duration_days),
        entry_z_score=entry_z,
        exit_z_score=exit_z,
        total_return_pct=total_return_pct,
        direction=direction,
    )


def epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def trade():
    return make_trade()


@pytest.fixture
def small_config():
    """2x2 grid with the default throttle."""
    return SweepConfig(beta_windows=[7, 14], z_score_windows=[7, 14])


@pytest.fixture
def fast_config():
    """2x2 grid with no throttle delays."""
    return SweepConfig(
        beta_windows=[7, 14],
        z_score_windows=[7, 14],
        throttle=ThrottleConfig(call_delay=0, trade_delay=0),
    )


@pytest.fixture
def make_client(sleep):
    """Build a RetryingMetricsClient over a provider, sharing the recording sleep."""

    def _make(provider, **policy_kwargs) -> RetryingMetricsClient:
        return RetryingMetricsClient(provider, policy=RetryPolicy(**policy_kwargs), sleep=sleep)

    return _make
