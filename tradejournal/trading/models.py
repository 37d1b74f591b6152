"""Data models for the position ledger."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Side(Enum):
    """Direction of a leveraged position."""
    LONG = "long"
    SHORT = "short"


class EventKind(Enum):
    """What a journaled trade event did to the position."""
    OPEN = "open"
    ADD = "add"
    REDUCE = "reduce"
    CLOSE = "close"


@dataclass(frozen=True)
class Entry:
    """One fill that opened or added to a position.

    Attributes:
        price: Fill price
        time: Fill time, epoch ms
        quantity: Filled quantity
    """
    price: Decimal
    time: int
    quantity: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"price": str(self.price), "time": self.time, "quantity": str(self.quantity)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        return cls(price=Decimal(data["price"]), time=int(data["time"]), quantity=Decimal(data["quantity"]))


@dataclass
class Position:
    """The live position of a ledger.

    Attributes:
        side: LONG or SHORT
        entries: Fills in the order they were added
        avg_price: Quantity-weighted mean of the entry prices
        quantity: Open quantity (entries minus partial closes)
        leverage: PnL multiplier, 1-125
        open_time: Time of the first entry, epoch ms
        symbol: Trading pair symbol (e.g., "BTCUSDT")
        stop_loss: Annotated stop price, never triggered by the ledger
        take_profit: Annotated target price, never triggered by the ledger
    """
    side: Side
    entries: List[Entry]
    avg_price: Decimal
    quantity: Decimal
    leverage: int
    open_time: int
    symbol: Optional[str] = None
    stop_loss: Optional[Decimal] = None
    take_profit: Optional[Decimal] = None

    @property
    def cost_value(self) -> Decimal:
        """Notional value of the open quantity at the average price."""
        return self.quantity * self.avg_price

    def base_pnl(self, price: Decimal, quantity: Optional[Decimal] = None) -> Decimal:
        """Unleveraged PnL of ``quantity`` (default: all) exited at ``price``."""
        qty = self.quantity if quantity is None else quantity
        if self.side is Side.LONG:
            return (price - self.avg_price) * qty
        return (self.avg_price - price) * qty


@dataclass(frozen=True)
class ClosedTrade:
    """A realized full or partial close.

    Attributes:
        side: Side of the position that was closed
        entry_price: Position average price at the time of the close
        close_price: Exit price
        quantity: Closed quantity
        leverage: Leverage applied to the PnL
        symbol: Trading pair symbol
        open_time: Time the position was opened, epoch ms
        close_time: Time of this close, epoch ms
        partial: True for a reduce that left the position open
        realized_pnl: Leveraged profit/loss
        entries: The position's fills, recorded on a full close only
    """
    side: Side
    entry_price: Decimal
    close_price: Decimal
    quantity: Decimal
    leverage: int
    symbol: Optional[str]
    open_time: int
    close_time: int
    partial: bool
    realized_pnl: Decimal
    entries: Tuple[Entry, ...] = field(default_factory=tuple)

    @property
    def is_win(self) -> bool:
        return self.realized_pnl > 0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible representation (decimals as strings)."""
        return {
            "side": self.side.value,
            "entry_price": str(self.entry_price),
            "close_price": str(self.close_price),
            "quantity": str(self.quantity),
            "leverage": self.leverage,
            "symbol": self.symbol,
            "open_time": self.open_time,
            "close_time": self.close_time,
            "partial": self.partial,
            "realized_pnl": str(self.realized_pnl),
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClosedTrade":
        return cls(
            side=Side(data["side"]),
            entry_price=Decimal(data["entry_price"]),
            close_price=Decimal(data["close_price"]),
            quantity=Decimal(data["quantity"]),
            leverage=int(data["leverage"]),
            symbol=data.get("symbol"),
            open_time=int(data["open_time"]),
            close_time=int(data["close_time"]),
            partial=bool(data["partial"]),
            realized_pnl=Decimal(data["realized_pnl"]),
            entries=tuple(Entry.from_dict(e) for e in data.get("entries", [])),
        )


@dataclass(frozen=True)
class TradeEvent:
    """A ledger operation placed on the chart timeline."""
    kind: EventKind
    side: Side
    price: Decimal
    time: int
    quantity: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "side": self.side.value,
            "price": str(self.price),
            "time": self.time,
            "quantity": str(self.quantity),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TradeEvent":
        return cls(
            kind=EventKind(data["kind"]),
            side=Side(data["side"]),
            price=Decimal(data["price"]),
            time=int(data["time"]),
            quantity=Decimal(data["quantity"]),
        )


@dataclass(frozen=True)
class UnrealizedPnl:
    pnl: Decimal
    pnl_percent: Decimal
