# Trading module
"""Position ledger, capital backtest, closed-trade records and trade analytics."""

from .models import ClosedTrade, Entry, EventKind, Position, Side, TradeEvent, UnrealizedPnl
from .ledger import (
    IPositionLedger,
    LedgerSerializer,
    PositionLedger,
    MAX_LEVERAGE,
    MIN_LEVERAGE,
)
from .analytics import (
    PROFIT_FACTOR_INFINITE,
    PROFIT_FACTOR_UNDEFINED,
    ITradeAnalytics,
    TimelineMarker,
    TradeAnalytics,
    TradeStats,
    calculate_stats,
)
from .backtest import (
    Backtest,
    BacktestStats,
    BacktestTrade,
    IBacktest,
    fee_adjusted_pnl,
    max_drawdown,
)

__all__ = [
    "ClosedTrade",
    "Entry",
    "EventKind",
    "Position",
    "Side",
    "TradeEvent",
    "UnrealizedPnl",
    "IPositionLedger",
    "LedgerSerializer",
    "PositionLedger",
    "MAX_LEVERAGE",
    "MIN_LEVERAGE",
    "PROFIT_FACTOR_INFINITE",
    "PROFIT_FACTOR_UNDEFINED",
    "ITradeAnalytics",
    "TimelineMarker",
    "TradeAnalytics",
    "TradeStats",
    "calculate_stats",
    "Backtest",
    "BacktestStats",
    "BacktestTrade",
    "IBacktest",
    "fee_adjusted_pnl",
    "max_drawdown",
]
