"""Performance analytics over closed trades."""

import bisect
import csv
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence

from tradejournal.data.models import Bar, granularity_ms

from .models import ClosedTrade, TradeEvent

# profit_factor when there are winning trades and no losing trades.
PROFIT_FACTOR_INFINITE = Decimal("Infinity")
# profit_factor when there is nothing to compare (no wins and no losses).
PROFIT_FACTOR_UNDEFINED = None


@dataclass(frozen=True)
class TradeStats:
    """Aggregate statistics for a list of closed trades.

    Attributes:
        total_trades: Number of ClosedTrade records (partial closes included)
        total_pnl: Sum of realized PnL
        win_trades: Trades with positive PnL
        loss_trades: Trades with negative PnL
        win_rate: Percentage of winning trades (0-100)
        avg_win: Mean PnL of winning trades
        avg_loss: Mean absolute PnL of losing trades
        profit_factor: Sum of wins / |sum of losses|, PROFIT_FACTOR_INFINITE
            or PROFIT_FACTOR_UNDEFINED
    """
    total_trades: int
    total_pnl: Decimal
    win_trades: int
    loss_trades: int
    win_rate: Decimal
    avg_win: Decimal
    avg_loss: Decimal
    profit_factor: Optional[Decimal]


@dataclass(frozen=True)
class TimelineMarker:
    """A trade event pinned to the bar whose interval contains it."""
    bar_time: int
    event: TradeEvent


class ITradeAnalytics(ABC):
    """Interface for trade analytics operations."""

    @abstractmethod
    def calculate_stats(self, trades: Sequence[ClosedTrade]) -> TradeStats:
        """Calculate aggregate statistics from closed trades.

        Args:
            trades: Closed trades, full and partial

        Returns:
            TradeStats with calculated values
        """
        ...

    @abstractmethod
    def export_to_csv(self, trades: Sequence[ClosedTrade], filepath: str) -> None:
        """Export closed trades to a CSV file.

        Args:
            trades: Closed trades to export
            filepath: Path to output CSV file
        """
        ...

    @abstractmethod
    def sort_trades_by_close_time(
        self, trades: Sequence[ClosedTrade], descending: bool = True
    ) -> List[ClosedTrade]:
        """Sort trades by close time.

        Args:
            trades: Trades to sort
            descending: If True, most recent first (default)

        Returns:
            Sorted list of trades
        """
        ...


class TradeAnalytics(ITradeAnalytics):
    """Concrete implementation of trade analytics.

    Every method is a pure function of its arguments: statistics are
    recomputed from the trade list on each call and nothing is cached.
    """

    def calculate_stats(self, trades: Sequence[ClosedTrade]) -> TradeStats:
        total_trades = len(trades)
        total_pnl = sum((t.realized_pnl for t in trades), Decimal("0"))

        wins = [t.realized_pnl for t in trades if t.realized_pnl > 0]
        losses = [t.realized_pnl for t in trades if t.realized_pnl < 0]
        total_win = sum(wins, Decimal("0"))
        total_loss = abs(sum(losses, Decimal("0")))

        if total_trades > 0:
            win_rate = (Decimal(len(wins)) / Decimal(total_trades)) * Decimal("100")
        else:
            win_rate = Decimal("0")

        avg_win = total_win / len(wins) if wins else Decimal("0")
        avg_loss = total_loss / len(losses) if losses else Decimal("0")

        if losses:
            profit_factor = total_win / total_loss
        elif wins:
            profit_factor = PROFIT_FACTOR_INFINITE
        else:
            profit_factor = PROFIT_FACTOR_UNDEFINED

        return TradeStats(
            total_trades=total_trades,
            total_pnl=total_pnl,
            win_trades=len(wins),
            loss_trades=len(losses),
            win_rate=win_rate,
            avg_win=avg_win,
            avg_loss=avg_loss,
            profit_factor=profit_factor,
        )

    def sort_trades_by_close_time(
        self, trades: Sequence[ClosedTrade], descending: bool = True
    ) -> List[ClosedTrade]:
        return sorted(trades, key=lambda t: t.close_time, reverse=descending)

    def export_to_csv(self, trades: Sequence[ClosedTrade], filepath: str) -> None:
        fieldnames = [
            "symbol", "side", "entry_price", "close_price", "quantity",
            "leverage", "open_time", "close_time", "partial", "realized_pnl",
        ]

        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
            writer.writeheader()

            for trade in trades:
                writer.writerow({
                    "symbol": trade.symbol or "",
                    "side": trade.side.value,
                    "entry_price": str(trade.entry_price),
                    "close_price": str(trade.close_price),
                    "quantity": str(trade.quantity),
                    "leverage": trade.leverage,
                    "open_time": trade.open_time,
                    "close_time": trade.close_time,
                    "partial": trade.partial,
                    "realized_pnl": str(trade.realized_pnl),
                })

    def export_trading_history(self, trades: Sequence[ClosedTrade]) -> dict:
        """Bundle trades and their statistics into a JSON-compatible dict."""
        stats = self.calculate_stats(trades)
        profit_factor = stats.profit_factor
        return {
            "trades": [t.to_dict() for t in trades],
            "stats": {
                "total_trades": stats.total_trades,
                "total_pnl": str(stats.total_pnl),
                "win_trades": stats.win_trades,
                "loss_trades": stats.loss_trades,
                "win_rate": str(stats.win_rate),
                "avg_win": str(stats.avg_win),
                "avg_loss": str(stats.avg_loss),
                "profit_factor": str(profit_factor) if profit_factor is not None else None,
            },
            "export_time": datetime.now(timezone.utc).isoformat(),
        }

    def place_events_on_bars(
        self, events: Sequence[TradeEvent], bars: Sequence[Bar], granularity: str
    ) -> List[TimelineMarker]:
        """Pin each event to the bar whose interval contains its time.

        Events that fall before the first bar, after the last bar's interval,
        or inside a gap between bars are dropped.
        """
        step = granularity_ms(granularity)
        times = [b.time for b in bars]
        markers: List[TimelineMarker] = []
        for event in events:
            idx = bisect.bisect_right(times, event.time) - 1
            if idx >= 0 and event.time < times[idx] + step:
                markers.append(TimelineMarker(times[idx], event))
        return markers


def calculate_stats(trades: Sequence[ClosedTrade]) -> TradeStats:
    """Aggregate statistics over ``trades``; see :meth:`TradeAnalytics.calculate_stats`."""
    return TradeAnalytics().calculate_stats(trades)
