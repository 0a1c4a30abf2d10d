"""
SQLAlchemy models for the trade history store.
Only the columns the sweep reads are mapped.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


class TradeHistory(Base):
    """Closed (or closing) pair trade"""

    __tablename__ = "trade_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    pair: Mapped[str] = mapped_column(String(50), nullable=False)
    asset1: Mapped[str] = mapped_column(String(20), nullable=False)
    asset2: Mapped[str] = mapped_column(String(20), nullable=False)
    direction: Mapped[str | None] = mapped_column(String(10), nullable=True)

    entry_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    entry_z_score: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 4), nullable=True)

    exit_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exit_z_score: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 4), nullable=True)
    total_pnl: Mapped[Decimal | None] = mapped_column(DECIMAL(10, 4), nullable=True)

    __table_args__ = (
        Index("idx_history_pair", "pair"),
        Index("idx_history_exit", "exit_time"),
    )

    def __repr__(self) -> str:
        return f"<TradeHistory(id={self.id}, pair={self.pair}, total_pnl={self.total_pnl})>"
