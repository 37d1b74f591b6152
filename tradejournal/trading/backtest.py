"""Capital-based backtest: one position at a time, sized from capital, with fees."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from tradejournal.errors import (
    InvalidArgument,
    InvalidPercent,
    InvalidPrice,
    InvalidStateTransition,
    NoPosition,
    PositionAlreadyOpen,
)

from .ledger import Number, to_decimal, to_side
from .models import Side

DEFAULT_INITIAL_CAPITAL = Decimal("10000")
DEFAULT_POSITION_SIZE_PCT = Decimal("100")
DEFAULT_FEE_RATE_PCT = Decimal("0.1")

_HUNDRED = Decimal("100")


def fee_adjusted_pnl(side: Side, entry_price: Decimal, exit_price: Decimal, quantity: Decimal, fee_rate_pct: Decimal) -> Decimal:
    """PnL of a round trip after paying ``fee_rate_pct`` on both the entry and the exit value."""
    entry_value = quantity * entry_price
    exit_value = quantity * exit_price
    fees = (entry_value + exit_value) * fee_rate_pct / _HUNDRED
    if side is Side.LONG:
        return exit_value - entry_value - fees
    return entry_value - exit_value - fees


def max_drawdown(initial_capital: Decimal, pnls: Iterable[Decimal]) -> Decimal:
    """Largest peak-to-trough fall of the closed-trade equity curve, in percent.

    The curve starts at ``initial_capital`` and steps by each trade's PnL.
    """
    capital = initial_capital
    peak = initial_capital
    worst = Decimal("0")
    for pnl in pnls:
        capital += pnl
        if capital > peak:
            peak = capital
        elif peak > 0:
            worst = max(worst, (peak - capital) / peak * _HUNDRED)
    return worst


@dataclass(frozen=True)
class BacktestTrade:
    """One backtest round trip, open until ``close_price`` is set.

    Attributes:
        side: Position side
        entry_price: Fill price of the entry
        entry_time: Entry time, epoch ms
        quantity: Units bought or sold, net of the entry fee
        capital_after: Capital once the trade was recorded
        close_price: Exit price (None while open)
        close_time: Exit time (None while open)
        pnl: Fee-adjusted PnL (None while open)
    """
    side: Side
    entry_price: Decimal
    entry_time: int
    quantity: Decimal
    capital_after: Decimal
    close_price: Optional[Decimal] = None
    close_time: Optional[int] = None
    pnl: Optional[Decimal] = None

    @property
    def is_closed(self) -> bool:
        return self.close_price is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side.value,
            "entry_price": str(self.entry_price),
            "entry_time": self.entry_time,
            "quantity": str(self.quantity),
            "capital_after": str(self.capital_after),
            "close_price": str(self.close_price) if self.close_price is not None else None,
            "close_time": self.close_time,
            "pnl": str(self.pnl) if self.pnl is not None else None,
        }


@dataclass(frozen=True)
class BacktestStats:
    """Capital summary of a backtest run.

    ``total_trades``, ``win_trades`` and ``win_rate`` count closed trades only.
    ``return_pct``, ``win_rate`` and ``max_drawdown`` are percentages.
    """
    initial_capital: Decimal
    current_capital: Decimal
    profit: Decimal
    return_pct: Decimal
    total_trades: int
    win_trades: int
    win_rate: Decimal
    max_drawdown: Decimal
    position_side: Optional[Side]

    @property
    def has_position(self) -> bool:
        return self.position_side is not None


def _positive_capital(value: Number) -> Decimal:
    capital = to_decimal(value, "initial_capital")
    if capital <= 0:
        raise InvalidArgument(f"Initial capital must be greater than zero, got {capital}")
    return capital


def _position_size(value: Number) -> Decimal:
    size = to_decimal(value, "position_size_pct")
    if not 0 < size <= _HUNDRED:
        raise InvalidPercent(f"Position size must be in (0, 100], got {size}")
    return size


def _fee_rate(value: Number) -> Decimal:
    rate = to_decimal(value, "fee_rate_pct")
    if not 0 <= rate < _HUNDRED:
        raise InvalidPercent(f"Fee rate must be in [0, 100), got {rate}")
    return rate


class IBacktest(ABC):
    """Interface for capital-based backtest operations."""

    @abstractmethod
    def open_position(self, side: Union[Side, str], price: Number, time: int) -> BacktestTrade:
        """Open a position sized from the current capital."""
        ...

    @abstractmethod
    def close_position(self, price: Number, time: int) -> BacktestTrade:
        """Close the open position and book its fee-adjusted PnL."""
        ...

    @abstractmethod
    def stats(self) -> BacktestStats:
        """Summarize capital, return, win rate and drawdown."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop every trade and restore the initial capital."""
        ...


class Backtest(IBacktest):
    """Capital-based backtest with fees.

    Each entry commits ``position_size_pct`` of the current capital; the entry
    fee comes out of that notional before it is converted to a quantity.
    Capital only moves when a position is closed.
    """

    def __init__(
        self,
        initial_capital: Number = DEFAULT_INITIAL_CAPITAL,
        position_size_pct: Number = DEFAULT_POSITION_SIZE_PCT,
        fee_rate_pct: Number = DEFAULT_FEE_RATE_PCT,
    ) -> None:
        """Initialize the backtest.

        Args:
            initial_capital: Starting capital (default: 10000)
            position_size_pct: Share of capital committed per entry, in (0, 100]
            fee_rate_pct: Fee charged on entry and exit value, in [0, 100)
        """
        self._initial_capital = _positive_capital(initial_capital)
        self._position_size_pct = _position_size(position_size_pct)
        self._fee_rate_pct = _fee_rate(fee_rate_pct)
        self._capital = self._initial_capital
        self._trades: List[BacktestTrade] = []

    @property
    def initial_capital(self) -> Decimal:
        return self._initial_capital

    @property
    def current_capital(self) -> Decimal:
        return self._capital

    @property
    def position_size_pct(self) -> Decimal:
        return self._position_size_pct

    @property
    def fee_rate_pct(self) -> Decimal:
        return self._fee_rate_pct

    @property
    def position(self) -> Optional[BacktestTrade]:
        if self._trades and not self._trades[-1].is_closed:
            return self._trades[-1]
        return None

    @property
    def trades(self) -> List[BacktestTrade]:
        return list(self._trades)

    def open_position(self, side: Union[Side, str], price: Number, time: int) -> BacktestTrade:
        """Open a position sized from the current capital.

        Args:
            side: "long" or "short"
            price: Entry price
            time: Entry time, epoch ms

        Returns:
            The open trade

        Raises:
            PositionAlreadyOpen: If a position is already open
            InvalidPrice: If price <= 0
        """
        side = to_side(side)
        price = to_decimal(price, "price")
        if price <= 0:
            raise InvalidPrice(f"Price must be greater than zero, got {price}")
        if self.position is not None:
            raise PositionAlreadyOpen()

        value = self._capital * self._position_size_pct / _HUNDRED
        fee = value * self._fee_rate_pct / _HUNDRED
        trade = BacktestTrade(
            side=side,
            entry_price=price,
            entry_time=time,
            quantity=(value - fee) / price,
            capital_after=self._capital,
        )
        self._trades.append(trade)
        return trade

    def close_position(self, price: Number, time: int) -> BacktestTrade:
        """Close the open position.

        Raises:
            NoPosition: If no position is open
            InvalidPrice: If price <= 0
        """
        price = to_decimal(price, "price")
        if price <= 0:
            raise InvalidPrice(f"Price must be greater than zero, got {price}")
        position = self.position
        if position is None:
            raise NoPosition()

        pnl = fee_adjusted_pnl(position.side, position.entry_price, price, position.quantity, self._fee_rate_pct)
        self._capital += pnl
        closed = replace(position, close_price=price, close_time=time, pnl=pnl, capital_after=self._capital)
        self._trades[-1] = closed
        return closed

    def stats(self) -> BacktestStats:
        closed = [t for t in self._trades if t.is_closed]
        wins = sum(1 for t in closed if t.pnl > 0)
        profit = self._capital - self._initial_capital
        position = self.position
        return BacktestStats(
            initial_capital=self._initial_capital,
            current_capital=self._capital,
            profit=profit,
            return_pct=profit / self._initial_capital * _HUNDRED,
            total_trades=len(closed),
            win_trades=wins,
            win_rate=Decimal(wins) / Decimal(len(closed)) * _HUNDRED if closed else Decimal("0"),
            max_drawdown=max_drawdown(self._initial_capital, (t.pnl for t in closed)),
            position_side=position.side if position is not None else None,
        )

    def update_params(
        self,
        initial_capital: Optional[Number] = None,
        position_size_pct: Optional[Number] = None,
        fee_rate_pct: Optional[Number] = None,
    ) -> None:
        """Change backtest parameters.

        Sizing and fee changes apply to later trades. The initial capital can
        only change before the first trade; it also resets the current capital.

        Raises:
            InvalidStateTransition: If ``initial_capital`` is given after trading started
        """
        capital = _positive_capital(initial_capital) if initial_capital is not None else None
        size = _position_size(position_size_pct) if position_size_pct is not None else None
        rate = _fee_rate(fee_rate_pct) if fee_rate_pct is not None else None
        if capital is not None and self._trades:
            raise InvalidStateTransition("Clear the backtest before changing the initial capital")

        if capital is not None:
            self._initial_capital = capital
            self._capital = capital
        if size is not None:
            self._position_size_pct = size
        if rate is not None:
            self._fee_rate_pct = rate

    def clear(self) -> None:
        self._trades = []
        self._capital = self._initial_capital

    def export_trades(self, export_time: Optional[datetime] = None) -> Dict[str, Any]:
        """Export capital and trades as a JSON-ready dict with decimals as strings."""
        export_time = export_time or datetime.now(timezone.utc)
        return {
            "initial_capital": str(self._initial_capital),
            "final_capital": str(self._capital),
            "profit": str(self._capital - self._initial_capital),
            "trades": [t.to_dict() for t in self._trades],
            "export_time": export_time.isoformat(),
        }
