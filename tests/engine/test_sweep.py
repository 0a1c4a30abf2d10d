"""Tests for WindowSweepEngine.

Provider calls go through a real RetryingMetricsClient over a fake provider;
sleeps are recorded instead of awaited.
"""

from unittest.mock import MagicMock

import pytest

from conftest import ENTRY_TIME, FakeProvider, default_payload, epoch_ms, make_trade
from window_sweep.api.exceptions import InvalidRequestError, RateLimitError
from window_sweep.engine.models import MAX_RETRIES_EXCEEDED, WindowConfig
from window_sweep.engine.sweep import NOT_MEAN_REVERTING, WindowSweepEngine
from window_sweep.persistence.checkpoint import SweepCheckpoint

EXIT_MS = epoch_ms(make_trade().exit_time)
ENTRY_MS = epoch_ms(ENTRY_TIME)


def beta_by_time(entry_beta: float = 1.0, exit_beta: float = 1.25, half_life: float = 5.0):
    """Responder giving one beta at entry and another at exit."""

    def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
        beta = entry_beta if at_ms == ENTRY_MS else exit_beta
        return default_payload(beta=beta, half_life_days=half_life)

    return responder


@pytest.fixture
def engine_factory(make_client, sleep, fast_config):
    def _make(provider, config=None, checkpoint=None, **policy_kwargs):
        return WindowSweepEngine(
            make_client(provider, **policy_kwargs),
            config=config or fast_config,
            sleep=sleep,
            checkpoint=checkpoint,
        )

    return _make


# =========================================================================
# Matrix shape and ordering
# =========================================================================


class TestSweepMatrix:
    @pytest.mark.asyncio
    async def test_full_matrix_for_every_trade(self, engine_factory):
        engine = engine_factory(FakeProvider(beta_by_time()))
        trades = [make_trade("t1"), make_trade("t2", pair="SOL/AVAX")]

        results = await engine.sweep(trades)

        assert [r.trade.trade_id for r in results] == ["t1", "t2"]
        for result in results:
            assert set(result.combinations) == {"7d_7d", "7d_14d", "14d_7d", "14d_14d"}

    @pytest.mark.asyncio
    async def test_call_sequence(self, engine_factory):
        provider = FakeProvider(beta_by_time())
        engine = engine_factory(provider)

        await engine.sweep([make_trade()])

        assert provider.calls == [
            # reference half-life under the largest windows
            ("BTC", "ETH", ENTRY_MS, 14, 14),
            ("BTC", "ETH", ENTRY_MS, 7, 7),
            ("BTC", "ETH", EXIT_MS, 7, 7),
            ("BTC", "ETH", ENTRY_MS, 7, 14),
            ("BTC", "ETH", EXIT_MS, 7, 7),
            ("BTC", "ETH", ENTRY_MS, 14, 7),
            ("BTC", "ETH", EXIT_MS, 14, 14),
            ("BTC", "ETH", ENTRY_MS, 14, 14),
            ("BTC", "ETH", EXIT_MS, 14, 14),
        ]

    @pytest.mark.asyncio
    async def test_explicit_windows_override_config(self, engine_factory):
        engine = engine_factory(FakeProvider())

        [result] = await engine.sweep([make_trade()], beta_windows=[3, 30], z_score_windows=[5])

        assert sorted(result.combinations) == ["30d_5d", "3d_5d"]

    @pytest.mark.asyncio
    async def test_empty_windows_rejected(self, engine_factory):
        engine = engine_factory(FakeProvider())
        with pytest.raises(ValueError):
            await engine.sweep([make_trade()], beta_windows=[])

    @pytest.mark.asyncio
    async def test_no_trades(self, engine_factory):
        provider = FakeProvider()
        assert await engine_factory(provider).sweep([]) == []
        assert provider.calls == []


# =========================================================================
# Cell computation
# =========================================================================


class TestSweepCells:
    @pytest.mark.asyncio
    async def test_beta_drift_and_outcome(self, engine_factory):
        engine = engine_factory(FakeProvider(beta_by_time(entry_beta=1.0, exit_beta=1.25)))

        [result] = await engine.sweep([make_trade(entry_z=2.2, exit_z=0.6, total_return_pct=1.8)])

        assert result.half_life == 5.0
        assert result.skip_reason is None
        for combo in result.combinations.values():
            assert combo.error is None
            assert combo.beta_at_entry == 1.0
            assert combo.beta_at_exit == 1.25
            assert combo.beta_drift == pytest.approx(0.25)
            assert combo.win is True
            assert combo.actual_roi == 1.8
            assert combo.predicted_roi is not None
            assert combo.days_to_target == pytest.approx(4.0)
            assert combo.is_valid

    @pytest.mark.asyncio
    async def test_null_z_scores_never_count_as_losses(self, engine_factory):
        engine = engine_factory(FakeProvider())

        [result] = await engine.sweep([make_trade(entry_z=None, exit_z=None)])

        for combo in result.combinations.values():
            assert combo.win is None
            assert combo.predicted_roi is None
            assert combo.beta_drift is not None

    @pytest.mark.asyncio
    async def test_entry_failure_records_error_and_skips_exit(self, engine_factory):
        def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
            if at_ms == ENTRY_MS and (beta_window, z_score_window) == (7, 14):
                raise InvalidRequestError("HTTP 400: window too short")
            return default_payload()

        provider = FakeProvider(responder)
        engine = engine_factory(provider)

        [result] = await engine.sweep([make_trade()])

        failed = result.combinations["7d_14d"]
        assert failed.error == "HTTP 400: window too short"
        assert failed.beta_at_entry is None
        assert failed.beta_drift is None
        assert failed.win is None
        assert not failed.is_valid
        # reference + 3 full cells + 1 entry-only cell
        assert len(provider.calls) == 1 + 3 * 2 + 1
        assert result.failed_cells() == [failed]

    @pytest.mark.asyncio
    async def test_exhausted_retries_recorded_on_cell(self, engine_factory):
        def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
            if at_ms == ENTRY_MS and (beta_window, z_score_window) == (14, 7):
                raise ConnectionError("reset by peer")
            return default_payload()

        engine = engine_factory(FakeProvider(responder))

        [result] = await engine.sweep([make_trade()])

        assert result.combinations["14d_7d"].error == MAX_RETRIES_EXCEEDED
        assert len(result.combinations) == 4

    @pytest.mark.asyncio
    async def test_exit_failure_is_cell_error(self, engine_factory):
        def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
            if at_ms == EXIT_MS and beta_window == 7:
                raise InvalidRequestError("no data at exit")
            return default_payload()

        engine = engine_factory(FakeProvider(responder))

        [result] = await engine.sweep([make_trade()])

        for key in ("7d_7d", "7d_14d"):
            combo = result.combinations[key]
            assert combo.error == "exit beta: no data at exit"
            assert combo.beta_at_entry == 1.0
            assert combo.beta_at_exit is None
            assert combo.beta_drift is None
            assert not combo.is_valid
        assert result.combinations["14d_14d"].is_valid


# =========================================================================
# Reference half-life
# =========================================================================


class TestReferenceHalfLife:
    @pytest.mark.asyncio
    async def test_failure_keeps_sweeping(self, engine_factory):
        def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
            if at_ms == ENTRY_MS and (beta_window, z_score_window) == (14, 14):
                raise InvalidRequestError("Insufficient data")
            return default_payload()

        engine = engine_factory(FakeProvider(responder))

        [result] = await engine.sweep([make_trade()])

        assert result.half_life is None
        assert result.skip_reason == "Insufficient data"
        assert len(result.combinations) == 4

    @pytest.mark.asyncio
    async def test_exhausted_retries_report_provider_error(self, engine_factory):
        def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
            if (beta_window, z_score_window) == (14, 14) and at_ms == ENTRY_MS:
                return {"error": "Insufficient price history"}
            return default_payload()

        engine = engine_factory(FakeProvider(responder))

        [result] = await engine.sweep([make_trade()])

        assert result.half_life is None
        assert result.skip_reason == "Insufficient price history"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("half_life", [-3.0, 0.0, float("nan")])
    async def test_invalid_half_life(self, engine_factory, half_life):
        engine = engine_factory(FakeProvider(beta_by_time(half_life=half_life)))

        [result] = await engine.sweep([make_trade()])

        assert not result.has_valid_half_life
        assert result.skip_reason == NOT_MEAN_REVERTING
        assert len(result.combinations) == 4

    @pytest.mark.asyncio
    async def test_reference_uses_largest_windows(self, engine_factory):
        provider = FakeProvider()
        engine = engine_factory(provider)

        await engine.sweep([make_trade()], beta_windows=[3, 30], z_score_windows=[7, 14])

        assert provider.calls[0][3:] == (30, 14)


# =========================================================================
# Throttling and cooldown
# =========================================================================


class TestThrottling:
    @pytest.mark.asyncio
    async def test_call_and_trade_delays(self, engine_factory, sleep, small_config):
        engine = engine_factory(FakeProvider(), config=small_config)

        await engine.sweep([make_trade("t1"), make_trade("t2")])

        calls_per_trade = 1 + 4 * 2
        assert sleep.delays == [0.5] * calls_per_trade + [2.0] + [0.5] * calls_per_trade

    @pytest.mark.asyncio
    async def test_no_trade_delay_after_last_trade(self, engine_factory, sleep, small_config):
        engine = engine_factory(FakeProvider(), config=small_config)

        await engine.sweep([make_trade()])

        assert 2.0 not in sleep.delays

    @pytest.mark.asyncio
    async def test_rate_limited_cell_cools_down(self, engine_factory, sleep):
        def responder(asset_a, asset_b, at_ms, beta_window, z_score_window):
            if at_ms == ENTRY_MS and (beta_window, z_score_window) == (7, 7):
                raise RateLimitError("HTTP 429")
            return default_payload()

        engine = engine_factory(FakeProvider(responder), max_attempts=1)

        [result] = await engine.sweep([make_trade()])

        assert result.combinations["7d_7d"].error == MAX_RETRIES_EXCEEDED
        assert sleep.delays.count(10.0) == 1


# =========================================================================
# Checkpointing
# =========================================================================


class TestSweepCheckpoint:
    @pytest.mark.asyncio
    async def test_each_trade_saved_and_kept(self, engine_factory):
        checkpoint = MagicMock(spec=SweepCheckpoint)
        checkpoint.load_completed.return_value = {}
        engine = engine_factory(FakeProvider(), checkpoint=checkpoint)

        await engine.sweep([make_trade("t1"), make_trade("t2")])

        assert checkpoint.save_trade.call_count == 2
        checkpoint.cleanup.assert_not_called()

    @pytest.mark.asyncio
    async def test_resume_skips_completed_trades(self, engine_factory, fast_config, tmp_path):
        checkpoint = SweepCheckpoint(str(tmp_path))
        first = engine_factory(FakeProvider(beta_by_time(exit_beta=2.0)))
        [done] = await first.sweep([make_trade("t1")])

        run_id = SweepCheckpoint.run_id(fast_config.window_grid, fast_config.reference_window)
        checkpoint.save_trade(run_id, done)

        provider = FakeProvider()
        engine = engine_factory(provider, checkpoint=checkpoint)
        results = await engine.sweep([make_trade("t1"), make_trade("t2", pair="SOL/AVAX")])

        assert [r.trade.trade_id for r in results] == ["t1", "t2"]
        assert results[0].combinations["7d_7d"].beta_at_exit == 2.0
        assert {call[0] for call in provider.calls} == {"SOL"}
        assert set(checkpoint.load_completed(run_id)) == {"t1", "t2"}

    @pytest.mark.asyncio
    async def test_checkpoint_with_other_grid_ignored(self, engine_factory, tmp_path):
        checkpoint = SweepCheckpoint(str(tmp_path))
        engine = engine_factory(FakeProvider())
        [done] = await engine.sweep([make_trade("t1")], beta_windows=[3], z_score_windows=[3])

        run_id = SweepCheckpoint.run_id([WindowConfig(7, 7), WindowConfig(7, 14),
                                         WindowConfig(14, 7), WindowConfig(14, 14)],
                                        WindowConfig(14, 14))
        # Same run id but the stored matrix is 1x1: it does not cover the grid
        checkpoint.save_trade(run_id, done)

        provider = FakeProvider()
        engine = engine_factory(provider, checkpoint=checkpoint)
        [result] = await engine.sweep([make_trade("t1")])

        assert len(result.combinations) == 4
        assert len(provider.calls) == 9
