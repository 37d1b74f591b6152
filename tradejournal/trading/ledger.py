"""Position ledger for manual trade journaling."""

from abc import ABC, abstractmethod
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Union

from tradejournal.config import get_settings
from tradejournal.errors import (
    InvalidArgument,
    InvalidLeverage,
    InvalidPercent,
    InvalidPrice,
    InvalidQuantity,
    NoPosition,
    OppositePositionExists,
)

from .analytics import TradeStats, calculate_stats
from .models import ClosedTrade, Entry, EventKind, Position, Side, TradeEvent, UnrealizedPnl

Number = Union[Decimal, int, float, str]

MIN_LEVERAGE = 1
MAX_LEVERAGE = 125

_HUNDRED = Decimal("100")


def to_decimal(value: Number, name: str = "value") -> Decimal:
    """Convert a user-supplied number to Decimal without float artifacts."""
    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise InvalidArgument(f"{name} must be a number, got {value!r}") from e
    if not result.is_finite():
        raise InvalidArgument(f"{name} must be finite, got {value!r}")
    return result


def validate_leverage(leverage: Any) -> int:
    if isinstance(leverage, bool) or not isinstance(leverage, int):
        raise InvalidLeverage(f"Leverage must be an integer, got {leverage!r}")
    if not MIN_LEVERAGE <= leverage <= MAX_LEVERAGE:
        raise InvalidLeverage(f"Leverage must be between {MIN_LEVERAGE} and {MAX_LEVERAGE}, got {leverage}")
    return leverage


def to_side(side: Union[Side, str]) -> Side:
    if isinstance(side, Side):
        return side
    try:
        return Side(str(side).lower())
    except ValueError:
        raise InvalidArgument(f"Side must be 'long' or 'short', got {side!r}") from None


def _positive_price(price: Number) -> Decimal:
    value = to_decimal(price, "price")
    if value <= 0:
        raise InvalidPrice(f"Price must be greater than zero, got {value}")
    return value


def _positive_quantity(quantity: Number) -> Decimal:
    value = to_decimal(quantity, "quantity")
    if value <= 0:
        raise InvalidQuantity(f"Quantity must be greater than zero, got {value}")
    return value


def _copy_position(position: Position) -> Position:
    return replace(position, entries=list(position.entries))


class IPositionLedger(ABC):
    """Interface for position ledger operations."""

    @abstractmethod
    def open(
        self,
        side: Union[Side, str],
        price: Number,
        time: int,
        quantity: Number,
        leverage: Optional[int] = None,
        symbol: Optional[str] = None,
    ) -> Position:
        """Open a position, or add to the open one on the same side."""
        ...

    @abstractmethod
    def reduce(self, price: Number, time: int, quantity: Number) -> ClosedTrade:
        """Partially close the open position."""
        ...

    @abstractmethod
    def reduce_by_percent(self, price: Number, time: int, percent: Number) -> ClosedTrade:
        """Close a percentage of the open quantity."""
        ...

    @abstractmethod
    def add_by_percent(
        self,
        side: Union[Side, str],
        price: Number,
        time: int,
        percent: Number,
        symbol: Optional[str] = None,
    ) -> Position:
        """Add to the open position, sized as a percentage of its value."""
        ...

    @abstractmethod
    def close(self, price: Number, time: int) -> ClosedTrade:
        """Close the whole open position."""
        ...

    @abstractmethod
    def set_stop_loss(self, price: Number) -> None:
        """Annotate the open position with a stop-loss price."""
        ...

    @abstractmethod
    def set_take_profit(self, price: Number) -> None:
        """Annotate the open position with a take-profit price."""
        ...

    @abstractmethod
    def set_leverage(self, leverage: int) -> None:
        """Change the default leverage and the open position's leverage."""
        ...

    @abstractmethod
    def unrealized_pnl(self, current_price: Number) -> UnrealizedPnl:
        """PnL the open position would realize if closed at ``current_price``."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Reset the ledger to an empty session."""
        ...


class PositionLedger(IPositionLedger):
    """Single-session ledger holding at most one open position.

    State machine: Flat -> Open -> Flat. Opens on the same side add entries
    and move the weighted average price; reduces and closes append
    ClosedTrade records and never touch the average price.

    Every mutating operation validates its inputs and the current state
    before changing anything, so a raised error leaves the ledger exactly as
    it was. Instances are not thread-safe; use one ledger per session.
    """

    def __init__(self, leverage: Optional[int] = None, symbol: Optional[str] = None) -> None:
        """Initialize an empty ledger.

        Args:
            leverage: Default leverage for new positions (default from settings)
            symbol: Default symbol for new positions
        """
        self._leverage = validate_leverage(leverage if leverage is not None else get_settings().default_leverage)
        self._symbol = symbol
        self._position: Optional[Position] = None
        self._closed_trades: List[ClosedTrade] = []
        self._events: List[TradeEvent] = []

    @property
    def leverage(self) -> int:
        """Default leverage applied to newly opened positions."""
        return self._leverage

    @property
    def symbol(self) -> Optional[str]:
        """Default symbol applied to newly opened positions."""
        return self._symbol

    @property
    def position(self) -> Optional[Position]:
        """A copy of the open position, or None when flat."""
        return _copy_position(self._position) if self._position else None

    @property
    def has_position(self) -> bool:
        return self._position is not None

    @property
    def closed_trades(self) -> List[ClosedTrade]:
        return self._closed_trades.copy()

    @property
    def events(self) -> List[TradeEvent]:
        return self._events.copy()

    def _require_position(self) -> Position:
        if self._position is None:
            raise NoPosition()
        return self._position

    def open(
        self,
        side: Union[Side, str],
        price: Number,
        time: int,
        quantity: Number,
        leverage: Optional[int] = None,
        symbol: Optional[str] = None,
    ) -> Position:
        """Open a position, or add to the open one on the same side.

        Args:
            side: LONG or SHORT
            price: Fill price
            time: Fill time, epoch ms
            quantity: Fill quantity
            leverage: Leverage for a new position (default: ledger leverage);
                ignored when adding
            symbol: Symbol for a new position (default: ledger symbol)

        Returns:
            A copy of the resulting position

        Raises:
            OppositePositionExists: If a position on the other side is open
        """
        side = to_side(side)
        price = _positive_price(price)
        quantity = _positive_quantity(quantity)
        if leverage is not None:
            validate_leverage(leverage)

        position = self._position
        if position is None:
            self._position = Position(
                side=side,
                entries=[Entry(price, time, quantity)],
                avg_price=price,
                quantity=quantity,
                leverage=leverage if leverage is not None else self._leverage,
                open_time=time,
                symbol=symbol if symbol is not None else self._symbol,
            )
            self._events.append(TradeEvent(EventKind.OPEN, side, price, time, quantity))
            return _copy_position(self._position)

        if position.side is not side:
            raise OppositePositionExists()

        # Weighted average over every entry, including the new one
        entries = position.entries + [Entry(price, time, quantity)]
        total_value = sum((e.price * e.quantity for e in entries), Decimal("0"))
        total_quantity = sum((e.quantity for e in entries), Decimal("0"))
        position.entries = entries
        position.avg_price = total_value / total_quantity
        position.quantity += quantity
        self._events.append(TradeEvent(EventKind.ADD, side, price, time, quantity))
        return _copy_position(position)

    def reduce(self, price: Number, time: int, quantity: Number) -> ClosedTrade:
        """Partially close the open position.

        A request for the whole open quantity (or more) is a full close.

        Returns:
            The ClosedTrade record appended for this reduce

        Raises:
            NoPosition: If the ledger is flat
        """
        position = self._require_position()
        price = _positive_price(price)
        quantity = _positive_quantity(quantity)
        if quantity >= position.quantity:
            return self.close(price, time)

        trade = ClosedTrade(
            side=position.side,
            entry_price=position.avg_price,
            close_price=price,
            quantity=quantity,
            leverage=position.leverage,
            symbol=position.symbol,
            open_time=position.open_time,
            close_time=time,
            partial=True,
            realized_pnl=position.base_pnl(price, quantity) * position.leverage,
        )
        self._closed_trades.append(trade)
        position.quantity -= quantity
        self._events.append(TradeEvent(EventKind.REDUCE, position.side, price, time, quantity))
        return trade

    def reduce_by_percent(self, price: Number, time: int, percent: Number) -> ClosedTrade:
        """Close ``percent`` (0 < percent <= 100) of the open quantity.

        Raises:
            NoPosition: If the ledger is flat
            InvalidPercent: If percent is outside (0, 100]
        """
        position = self._require_position()
        pct = to_decimal(percent, "percent")
        if not Decimal("0") < pct <= _HUNDRED:
            raise InvalidPercent(f"Percent must be in (0, 100], got {pct}")
        return self.reduce(price, time, position.quantity * pct / _HUNDRED)

    def add_by_percent(
        self,
        side: Union[Side, str],
        price: Number,
        time: int,
        percent: Number,
        symbol: Optional[str] = None,
    ) -> Position:
        """Add to the open position with a value of ``percent`` of its notional.

        The added quantity is ``(quantity * avg_price) * percent / 100 / price``.
        The add always goes to the open position's side; ``side`` is only
        checked for being a valid side.

        Raises:
            NoPosition: If the ledger is flat
            InvalidPercent: If percent is not positive
        """
        to_side(side)
        position = self._require_position()
        pct = to_decimal(percent, "percent")
        if pct <= 0:
            raise InvalidPercent(f"Percent must be greater than zero, got {pct}")
        price = _positive_price(price)
        add_value = position.cost_value * pct / _HUNDRED
        return self.open(position.side, price, time, add_value / price, symbol=symbol)

    def close(self, price: Number, time: int) -> ClosedTrade:
        """Close the whole open position and return to flat.

        Returns:
            The ClosedTrade record, carrying the position's entries

        Raises:
            NoPosition: If the ledger is flat
        """
        position = self._require_position()
        price = _positive_price(price)

        trade = ClosedTrade(
            side=position.side,
            entry_price=position.avg_price,
            close_price=price,
            quantity=position.quantity,
            leverage=position.leverage,
            symbol=position.symbol,
            open_time=position.open_time,
            close_time=time,
            partial=False,
            realized_pnl=position.base_pnl(price) * position.leverage,
            entries=tuple(position.entries),
        )
        self._closed_trades.append(trade)
        self._events.append(TradeEvent(EventKind.CLOSE, position.side, price, time, position.quantity))
        self._position = None
        return trade

    def set_stop_loss(self, price: Number) -> None:
        position = self._require_position()
        position.stop_loss = to_decimal(price, "stop_loss")

    def set_take_profit(self, price: Number) -> None:
        position = self._require_position()
        position.take_profit = to_decimal(price, "take_profit")

    def set_leverage(self, leverage: int) -> None:
        """Change the default leverage.

        An open position takes the new leverage too, so its eventual close is
        multiplied by it. Closed trades keep the leverage they were closed at.

        Raises:
            InvalidLeverage: If leverage is not an integer in [1, 125]
        """
        self._leverage = validate_leverage(leverage)
        if self._position is not None:
            self._position.leverage = leverage

    def unrealized_pnl(self, current_price: Number) -> UnrealizedPnl:
        """PnL the open position would realize if closed at ``current_price``.

        Returns:
            pnl (leveraged) and pnl_percent relative to the position's cost
            value; both zero when flat
        """
        position = self._position
        if position is None:
            return UnrealizedPnl(Decimal("0"), Decimal("0"))
        price = to_decimal(current_price, "current_price")
        pnl = position.base_pnl(price) * position.leverage
        return UnrealizedPnl(pnl, pnl / position.cost_value * _HUNDRED)

    def stats(self, closed_trades: Optional[List[ClosedTrade]] = None) -> TradeStats:
        """Aggregate statistics over ``closed_trades`` (default: this ledger's)."""
        return calculate_stats(self._closed_trades if closed_trades is None else closed_trades)

    def clear(self) -> None:
        """Reset the ledger to an empty session.

        Drops the open position, every closed trade and every event. The
        default leverage and symbol are kept.
        """
        self._position = None
        self._closed_trades.clear()
        self._events.clear()


def _optional_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


class LedgerSerializer:
    """Serializer for ledger state to/from JSON-compatible dictionaries."""

    @staticmethod
    def serialize(ledger: PositionLedger) -> dict:
        """Serialize ledger state to a JSON-compatible dictionary.

        Args:
            ledger: Ledger instance to serialize

        Returns:
            Dictionary containing the ledger's settings, open position,
            closed trades and events; decimals are written as strings
        """
        position = ledger.position
        position_data = None
        if position is not None:
            position_data = {
                "side": position.side.value,
                "entries": [e.to_dict() for e in position.entries],
                "avg_price": str(position.avg_price),
                "quantity": str(position.quantity),
                "leverage": position.leverage,
                "open_time": position.open_time,
                "symbol": position.symbol,
                "stop_loss": str(position.stop_loss) if position.stop_loss is not None else None,
                "take_profit": str(position.take_profit) if position.take_profit is not None else None,
            }

        return {
            "leverage": ledger.leverage,
            "symbol": ledger.symbol,
            "position": position_data,
            "closed_trades": [t.to_dict() for t in ledger.closed_trades],
            "events": [e.to_dict() for e in ledger.events],
        }

    @staticmethod
    def deserialize(data: dict) -> PositionLedger:
        """Deserialize ledger state from a dictionary.

        Args:
            data: Dictionary produced by :meth:`serialize`

        Returns:
            Restored PositionLedger instance
        """
        ledger = PositionLedger(leverage=int(data["leverage"]), symbol=data.get("symbol"))

        pos_data = data.get("position")
        if pos_data is not None:
            ledger._position = Position(
                side=Side(pos_data["side"]),
                entries=[Entry.from_dict(e) for e in pos_data["entries"]],
                avg_price=Decimal(pos_data["avg_price"]),
                quantity=Decimal(pos_data["quantity"]),
                leverage=validate_leverage(int(pos_data["leverage"])),
                open_time=int(pos_data["open_time"]),
                symbol=pos_data.get("symbol"),
                stop_loss=_optional_decimal(pos_data.get("stop_loss")),
                take_profit=_optional_decimal(pos_data.get("take_profit")),
            )

        for trade_data in data.get("closed_trades", []):
            ledger._closed_trades.append(ClosedTrade.from_dict(trade_data))

        for event_data in data.get("events", []):
            ledger._events.append(TradeEvent.from_dict(event_data))

        return ledger
