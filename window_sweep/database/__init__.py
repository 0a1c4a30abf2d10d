"""Trade history store access"""

from window_sweep.database.models import Base, TradeHistory
from window_sweep.database.trade_source import SqlTradeSource, TradeSource, row_to_trade

__all__ = ["Base", "TradeHistory", "SqlTradeSource", "TradeSource", "row_to_trade"]
