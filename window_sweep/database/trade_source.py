"""
Trade source — read-only access to closed trades in the trade history store.

Failure to query is fatal to a sweep run: the caller gets TradeSourceError
and no partial report is produced.
"""

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from window_sweep.api.exceptions import TradeSourceError
from window_sweep.database.models import Base, TradeHistory
from window_sweep.engine.models import HistoricalTrade, TradeDirection
from window_sweep.logging import LoggerMixin


class TradeSource(Protocol):
    """Supplier of closed trades, in its native order."""

    async def list_closed_trades(self) -> list[HistoricalTrade]:
        ...


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_float(value) -> float | None:
    return float(value) if value is not None else None


def row_to_trade(row: TradeHistory) -> HistoricalTrade:
    """Map a trade_history row onto the immutable HistoricalTrade record."""
    direction = (row.direction or "long").lower()
    return HistoricalTrade(
        trade_id=str(row.id),
        pair=row.pair,
        asset_a=row.asset1,
        asset_b=row.asset2,
        entry_time=_as_utc(row.entry_time),  # type: ignore[arg-type]
        exit_time=_as_utc(row.exit_time),  # type: ignore[arg-type]
        entry_z_score=_as_float(row.entry_z_score),
        exit_z_score=_as_float(row.exit_z_score),
        total_return_pct=float(row.total_pnl),  # type: ignore[arg-type]
        direction=TradeDirection(direction) if direction in ("long", "short") else TradeDirection.LONG,
    )


class SqlTradeSource(LoggerMixin):
    """
    Async SQLAlchemy trade source over the ``trade_history`` table.

    Returns trades with an entry time, an exit time and a realized total
    return, newest entry first. Optional limit and entry-time window.
    """

    def __init__(
        self,
        database_url: str | None = None,
        engine: AsyncEngine | None = None,
        limit: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        echo: bool = False,
    ) -> None:
        if engine is None and database_url is None:
            raise ValueError("database_url or engine is required")

        self._engine = engine or create_async_engine(database_url, echo=echo)  # type: ignore[arg-type]
        self._owns_engine = engine is None
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self.limit = limit
        self.start_date = start_date
        self.end_date = end_date

    async def create_schema(self) -> None:
        """Create the trade_history table if missing."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()

    async def list_closed_trades(self) -> list[HistoricalTrade]:
        stmt = (
            select(TradeHistory)
            .where(TradeHistory.entry_time.is_not(None))
            .where(TradeHistory.exit_time.is_not(None))
            .where(TradeHistory.total_pnl.is_not(None))
            .order_by(TradeHistory.entry_time.desc())
        )
        if self.start_date is not None:
            stmt = stmt.where(TradeHistory.entry_time >= self.start_date)
        if self.end_date is not None:
            stmt = stmt.where(TradeHistory.entry_time <= self.end_date)
        if self.limit is not None:
            stmt = stmt.limit(self.limit)

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            self.logger.error("Trade history query failed", error=str(e))
            raise TradeSourceError(f"Trade history query failed: {e}") from e
        except OSError as e:
            self.logger.error("Trade history store unreachable", error=str(e))
            raise TradeSourceError(f"Trade history store unreachable: {e}") from e

        trades = [row_to_trade(row) for row in rows]
        self.logger.info("Closed trades loaded", count=len(trades))
        return trades
