"""Tests for the settings-driven entry point"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from conftest import ENTRY_TIME, FakeProvider
from window_sweep import main as main_module
from window_sweep.api.exceptions import TradeSourceError
from window_sweep.config.settings import SweepSettings
from window_sweep.database.models import TradeHistory
from window_sweep.database.trade_source import SqlTradeSource


class FakeHttpProvider(FakeProvider):
    def __init__(self, base_url, api_key=None, timeout=30.0):
        super().__init__()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "sweep.yaml"
    config_path.write_text(
        "beta_windows: [7, 14]\n"
        "z_score_windows: [7]\n"
        "throttle:\n"
        "  call_delay: 0\n"
        "  trade_delay: 0\n"
    )
    monkeypatch.setenv("SWEEP_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    monkeypatch.setenv("SWEEP_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("SWEEP_REPORT_DIR", str(tmp_path / "reports"))
    monkeypatch.setenv("SWEEP_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(main_module, "HttpMetricsProvider", FakeHttpProvider)
    return tmp_path


async def seed_history(database_url: str) -> None:
    source = SqlTradeSource(database_url=database_url)
    await source.create_schema()
    factory = async_sessionmaker(source._engine, expire_on_commit=False)
    async with factory() as session:
        session.add(TradeHistory(
            id="t1",
            pair="BTC/ETH",
            asset1="BTC",
            asset2="ETH",
            direction="long",
            entry_time=ENTRY_TIME,
            entry_z_score=Decimal("2.2"),
            exit_time=ENTRY_TIME + timedelta(days=4),
            exit_z_score=Decimal("0.6"),
            total_pnl=Decimal("1.8"),
        ))
        await session.commit()
    await source.close()


class TestRunFromSettings:
    @pytest.mark.asyncio
    async def test_full_run_writes_report(self, settings_env):
        settings = SweepSettings()
        await seed_history(settings.database_url)

        report = await main_module.run_from_settings(settings)

        assert report is not None
        [result] = report.results
        assert sorted(result.combinations) == ["14d_7d", "7d_7d"]
        assert len(list((settings_env / "reports").glob("*.md"))) == 1

    @pytest.mark.asyncio
    async def test_missing_table_is_fatal(self, settings_env):
        with pytest.raises(TradeSourceError):
            await main_module.run_from_settings(SweepSettings())


class TestMain:
    def test_exit_code_on_fatal_error(self, settings_env):
        assert main_module.main() == 1
        assert not (settings_env / "reports").exists()

    def test_exit_code_on_bad_config(self, settings_env, monkeypatch):
        monkeypatch.setenv("SWEEP_CONFIG_PATH", str(settings_env / "missing.yaml"))
        assert main_module.main() == 1

    def test_exit_code_on_invalid_env(self, settings_env, monkeypatch):
        monkeypatch.setenv("SWEEP_TRADE_LIMIT", "abc")
        assert main_module.main() == 1
        assert not (settings_env / "reports").exists()

    def test_exit_code_on_malformed_yaml(self, settings_env):
        (settings_env / "sweep.yaml").write_text("beta_windows: [3, 7\n")
        assert main_module.main() == 1
