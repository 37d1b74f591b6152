from __future__ import annotations

from decimal import Decimal

import pytest

from tradejournal.errors import (
    InvalidArgument,
    InvalidLeverage,
    InvalidPercent,
    InvalidPrice,
    InvalidQuantity,
    NoPosition,
    OppositePositionExists,
)
from tradejournal.trading import EventKind, LedgerSerializer, PositionLedger, Side


def test_open_add_reduce_close_scenario():
    ledger = PositionLedger(leverage=1, symbol="BTCUSDT")

    ledger.open(Side.LONG, 100, 1, 1)
    position = ledger.open(Side.LONG, 120, 2, 1)
    assert position.avg_price == Decimal("110")
    assert position.quantity == Decimal("2")

    partial = ledger.reduce(130, 3, 1)
    assert partial.partial is True
    assert partial.realized_pnl == Decimal("20")
    assert ledger.position.quantity == Decimal("1")
    # Reducing does not move the average price.
    assert ledger.position.avg_price == Decimal("110")

    final = ledger.close(140, 4)
    assert final.partial is False
    assert final.realized_pnl == Decimal("30")
    assert final.symbol == "BTCUSDT"
    assert [e.price for e in final.entries] == [Decimal("100"), Decimal("120")]
    assert ledger.position is None

    stats = ledger.stats()
    assert stats.total_trades == 2
    assert stats.total_pnl == Decimal("50")
    assert stats.win_trades == 2
    assert stats.win_rate == Decimal("100")


def test_short_position_profits_when_price_falls():
    ledger = PositionLedger(leverage=1)
    ledger.open("short", "200", 0, "0.5")
    trade = ledger.close("180", 1)
    assert trade.side is Side.SHORT
    assert trade.realized_pnl == Decimal("10")


def test_leverage_multiplies_realized_pnl():
    ledger = PositionLedger(leverage=10)
    ledger.open(Side.LONG, 100, 0, 1)
    assert ledger.close(105, 1).realized_pnl == Decimal("50")


def test_open_opposite_side_is_rejected():
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 1)
    with pytest.raises(OppositePositionExists):
        ledger.open(Side.SHORT, 100, 1, 1)
    assert ledger.position.side is Side.LONG
    assert len(ledger.events) == 1


@pytest.mark.parametrize(
    "kwargs,error",
    [
        ({"price": 0}, InvalidPrice),
        ({"price": -5}, InvalidPrice),
        ({"quantity": 0}, InvalidQuantity),
        ({"quantity": "-1"}, InvalidQuantity),
        ({"leverage": 0}, InvalidLeverage),
        ({"leverage": 126}, InvalidLeverage),
        ({"leverage": 2.5}, InvalidLeverage),
        ({"side": "sideways"}, InvalidArgument),
        ({"price": "abc"}, InvalidArgument),
        ({"price": float("nan")}, InvalidArgument),
        ({"quantity": True}, InvalidArgument),
    ],
)
def test_open_validates_arguments(kwargs, error):
    args = {"side": Side.LONG, "price": 100, "time": 0, "quantity": 1}
    args.update(kwargs)
    ledger = PositionLedger()
    with pytest.raises(error):
        ledger.open(**args)
    assert ledger.position is None
    assert ledger.events == []


def test_flat_ledger_rejects_reduce_and_close():
    ledger = PositionLedger()
    with pytest.raises(NoPosition):
        ledger.reduce(100, 0, 1)
    with pytest.raises(NoPosition):
        ledger.close(100, 0)
    with pytest.raises(NoPosition):
        ledger.set_stop_loss(90)


def test_reduce_more_than_open_quantity_closes_position():
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 2)
    trade = ledger.reduce(110, 1, 5)
    assert trade.partial is False
    assert trade.quantity == Decimal("2")
    assert ledger.position is None
    assert [e.kind for e in ledger.events] == [EventKind.OPEN, EventKind.CLOSE]


def test_reduce_by_percent():
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 4)
    trade = ledger.reduce_by_percent(110, 1, 25)
    assert trade.quantity == Decimal("1")
    assert trade.realized_pnl == Decimal("10")
    assert ledger.position.quantity == Decimal("3")

    final = ledger.reduce_by_percent(110, 2, 100)
    assert final.partial is False
    assert ledger.position is None


@pytest.mark.parametrize("percent", [0, -10, 100.5, 150])
def test_reduce_by_percent_range(percent):
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 1)
    with pytest.raises(InvalidPercent):
        ledger.reduce_by_percent(100, 1, percent)
    assert ledger.position.quantity == Decimal("1")


def test_add_by_percent_sizes_by_position_value():
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 2)
    # 50% of a 200 notional at price 50 is 2 units.
    position = ledger.add_by_percent(Side.LONG, 50, 1, 50)
    assert position.quantity == Decimal("4")
    assert position.avg_price == Decimal("75")
    assert ledger.events[-1].kind is EventKind.ADD


def test_add_by_percent_adds_to_existing_side():
    ledger = PositionLedger()
    ledger.open(Side.SHORT, 100, 0, 1)
    position = ledger.add_by_percent(Side.LONG, 100, 1, 100)
    assert position.side is Side.SHORT
    assert position.quantity == Decimal("2")
    assert ledger.events[-1].kind is EventKind.ADD
    assert ledger.events[-1].side is Side.SHORT


def test_add_by_percent_requires_position():
    ledger = PositionLedger()
    with pytest.raises(NoPosition):
        ledger.add_by_percent(Side.LONG, 100, 0, 10)


def test_set_leverage_applies_to_open_position():
    ledger = PositionLedger(leverage=1)
    ledger.open(Side.LONG, 100, 0, 1)
    first = ledger.reduce(110, 1, "0.5")
    ledger.set_leverage(5)
    assert ledger.leverage == 5
    assert ledger.position.leverage == 5

    second = ledger.close(110, 2)
    assert first.leverage == 1
    assert first.realized_pnl == Decimal("5")
    assert second.leverage == 5
    assert second.realized_pnl == Decimal("25")


def test_leverage_on_add_is_ignored():
    ledger = PositionLedger(leverage=2)
    ledger.open(Side.LONG, 100, 0, 1)
    position = ledger.open(Side.LONG, 100, 1, 1, leverage=20)
    assert position.leverage == 2


def test_unrealized_pnl():
    ledger = PositionLedger(leverage=2)
    flat = ledger.unrealized_pnl(100)
    assert flat.pnl == 0 and flat.pnl_percent == 0

    ledger.open(Side.LONG, 100, 0, 2)
    result = ledger.unrealized_pnl(110)
    assert result.pnl == Decimal("40")
    assert result.pnl_percent == Decimal("20")

    loss = ledger.unrealized_pnl(95)
    assert loss.pnl == Decimal("-20")
    assert loss.pnl_percent == Decimal("-10")


def test_stop_loss_and_take_profit_are_annotations_only():
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 1)
    ledger.set_stop_loss(90)
    ledger.set_take_profit("150")
    position = ledger.position
    assert position.stop_loss == Decimal("90")
    assert position.take_profit == Decimal("150")
    # A price through the stop changes nothing.
    ledger.unrealized_pnl(50)
    assert ledger.has_position


def test_position_property_returns_copy():
    ledger = PositionLedger()
    ledger.open(Side.LONG, 100, 0, 1)
    copy = ledger.position
    copy.quantity = Decimal("999")
    copy.entries.clear()
    assert ledger.position.quantity == Decimal("1")
    assert len(ledger.position.entries) == 1


def test_clear_keeps_defaults():
    ledger = PositionLedger(leverage=7, symbol="ETHUSDT")
    ledger.open(Side.SHORT, 100, 0, 1)
    ledger.reduce(90, 1, "0.5")
    ledger.clear()
    assert ledger.position is None
    assert ledger.closed_trades == []
    assert ledger.events == []
    assert ledger.leverage == 7
    assert ledger.symbol == "ETHUSDT"


def test_default_leverage_comes_from_settings(monkeypatch):
    monkeypatch.setattr(
        "tradejournal.trading.ledger.get_settings",
        lambda: type("S", (), {"default_leverage": 3})(),
    )
    assert PositionLedger().leverage == 3


def test_serializer_writes_decimals_as_strings():
    ledger = PositionLedger(leverage=2, symbol="BTCUSDT")
    ledger.open(Side.LONG, "100.5", 0, "0.25")
    data = LedgerSerializer.serialize(ledger)
    assert data["position"]["avg_price"] == "100.5"
    assert data["position"]["entries"] == [{"price": "100.5", "time": 0, "quantity": "0.25"}]
    assert data["events"][0]["kind"] == "open"

    restored = LedgerSerializer.deserialize(data)
    assert restored.position == ledger.position
    assert restored.symbol == "BTCUSDT"
