"""Tests for the capital-based backtest.

Scenario checks for fee-aware PnL, return and drawdown, plus Hypothesis
properties of the closed-trade equity curve.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List

import pytest
from hypothesis import given, settings, strategies as st

from tradejournal.errors import (
    InvalidArgument,
    InvalidPercent,
    InvalidPrice,
    InvalidStateTransition,
    NoPosition,
    PositionAlreadyOpen,
)
from tradejournal.trading import Backtest, Side, fee_adjusted_pnl, max_drawdown


positive_price_strategy = st.decimals(
    min_value=Decimal("1"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

price_move_strategy = st.decimals(
    min_value=Decimal("0.5"),
    max_value=Decimal("1.5"),
    places=3,
    allow_nan=False,
    allow_infinity=False
)

fee_rate_strategy = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

pnl_strategy = st.decimals(
    min_value=Decimal("-500"),
    max_value=Decimal("500"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

side_strategy = st.sampled_from([Side.LONG, Side.SHORT])

round_trip_strategy = st.tuples(side_strategy, positive_price_strategy, price_move_strategy)


def test_round_trip_pays_fees_on_entry_and_exit():
    backtest = Backtest()
    opened = backtest.open_position(Side.LONG, 100, 0)
    # 0.1% of the 10000 notional is taken before sizing.
    assert opened.quantity == Decimal("99.9")
    assert backtest.current_capital == Decimal("10000")

    closed = backtest.close_position(110, 1)
    assert closed.pnl == Decimal("978.021")
    assert closed.close_price == Decimal("110")
    assert closed.capital_after == Decimal("10978.021")
    assert backtest.position is None

    stats = backtest.stats()
    assert stats.profit == Decimal("978.021")
    assert stats.return_pct == Decimal("9.78021")
    assert stats.total_trades == 1
    assert stats.win_rate == Decimal("100")
    assert stats.max_drawdown == 0


def test_short_without_fees_profits_when_price_falls():
    backtest = Backtest(initial_capital=1000, fee_rate_pct=0)
    backtest.open_position("short", 100, 0)
    assert backtest.close_position(90, 1).pnl == Decimal("100")
    assert backtest.current_capital == Decimal("1100")


def test_drawdown_and_win_rate_over_closed_trades():
    backtest = Backtest(initial_capital=1000, fee_rate_pct=0)
    backtest.open_position(Side.LONG, 100, 0)
    backtest.close_position(80, 1)
    backtest.open_position(Side.LONG, 80, 2)
    backtest.close_position(100, 3)
    backtest.open_position(Side.SHORT, 100, 4)

    stats = backtest.stats()
    assert stats.current_capital == Decimal("1000")
    assert stats.profit == 0
    assert stats.total_trades == 2
    assert stats.win_trades == 1
    assert stats.win_rate == Decimal("50")
    assert stats.max_drawdown == Decimal("20")
    assert stats.has_position
    assert stats.position_side is Side.SHORT


def test_position_size_commits_share_of_capital():
    backtest = Backtest(initial_capital=1000, position_size_pct=25, fee_rate_pct=0)
    assert backtest.open_position(Side.LONG, 50, 0).quantity == Decimal("5")


def test_one_position_at_a_time():
    backtest = Backtest()
    with pytest.raises(NoPosition):
        backtest.close_position(100, 0)
    backtest.open_position(Side.LONG, 100, 0)
    with pytest.raises(PositionAlreadyOpen):
        backtest.open_position(Side.SHORT, 100, 1)
    assert len(backtest.trades) == 1


@pytest.mark.parametrize(
    "kwargs,error",
    [
        ({"initial_capital": 0}, InvalidArgument),
        ({"initial_capital": "-1"}, InvalidArgument),
        ({"position_size_pct": 0}, InvalidPercent),
        ({"position_size_pct": 101}, InvalidPercent),
        ({"fee_rate_pct": -1}, InvalidPercent),
        ({"fee_rate_pct": 100}, InvalidPercent),
    ],
)
def test_parameters_are_validated(kwargs, error):
    with pytest.raises(error):
        Backtest(**kwargs)


def test_open_rejects_non_positive_price():
    backtest = Backtest()
    with pytest.raises(InvalidPrice):
        backtest.open_position(Side.LONG, 0, 0)
    assert backtest.trades == []


def test_update_params():
    backtest = Backtest(initial_capital=1000, fee_rate_pct=0)
    backtest.update_params(initial_capital=2000)
    assert backtest.initial_capital == Decimal("2000")
    assert backtest.current_capital == Decimal("2000")

    # A bad value leaves every parameter untouched.
    with pytest.raises(InvalidPercent):
        backtest.update_params(position_size_pct=50, fee_rate_pct=200)
    assert backtest.position_size_pct == Decimal("100")

    backtest.open_position(Side.LONG, 100, 0)
    backtest.update_params(fee_rate_pct="0.5")
    assert backtest.fee_rate_pct == Decimal("0.5")
    with pytest.raises(InvalidStateTransition):
        backtest.update_params(initial_capital=5000)
    assert backtest.initial_capital == Decimal("2000")


def test_clear_restores_initial_capital():
    backtest = Backtest(initial_capital=1000, fee_rate_pct=0)
    backtest.open_position(Side.LONG, 100, 0)
    backtest.close_position(150, 1)
    backtest.open_position(Side.LONG, 150, 2)
    backtest.clear()
    assert backtest.trades == []
    assert backtest.position is None
    assert backtest.current_capital == Decimal("1000")


def test_export_trades():
    backtest = Backtest()
    backtest.open_position(Side.LONG, 100, 0)
    backtest.close_position(110, 1)
    backtest.open_position(Side.SHORT, 110, 2)

    data = backtest.export_trades(datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert data["initial_capital"] == "10000"
    assert Decimal(data["final_capital"]) == Decimal("10978.021")
    assert Decimal(data["profit"]) == Decimal("978.021")
    assert data["export_time"] == "2024-01-01T00:00:00+00:00"
    assert [t["side"] for t in data["trades"]] == ["long", "short"]
    assert data["trades"][1]["pnl"] is None
    assert data["trades"][1]["close_time"] is None


@given(
    side=side_strategy,
    entry=positive_price_strategy,
    move=price_move_strategy,
    quantity=st.decimals(min_value=Decimal("0.001"), max_value=Decimal("100"), places=3),
    fee_rate=fee_rate_strategy,
)
@settings(max_examples=100)
def test_fees_never_increase_pnl(side: Side, entry: Decimal, move: Decimal, quantity: Decimal, fee_rate: Decimal):
    """
    The fee-adjusted PnL equals the zero-fee PnL minus the fee on entry and
    exit value, so it is never larger.
    """
    exit_price = entry * move
    gross = fee_adjusted_pnl(side, entry, exit_price, quantity, Decimal("0"))
    net = fee_adjusted_pnl(side, entry, exit_price, quantity, fee_rate)
    assert net <= gross
    if side is Side.LONG:
        assert gross == quantity * exit_price - quantity * entry
    else:
        assert gross == quantity * entry - quantity * exit_price


@given(
    round_trips=st.lists(round_trip_strategy, min_size=1, max_size=10),
    fee_rate=fee_rate_strategy,
)
@settings(max_examples=100)
def test_capital_follows_closed_trade_pnl(round_trips: List[tuple], fee_rate: Decimal):
    """
    After any sequence of round trips, capital equals the initial capital plus
    every booked PnL, and each trade records the capital after it closed.
    """
    backtest = Backtest(initial_capital=10000, fee_rate_pct=fee_rate)
    expected = backtest.initial_capital
    for i, (side, entry, move) in enumerate(round_trips):
        backtest.open_position(side, entry, 2 * i)
        closed = backtest.close_position(entry * move, 2 * i + 1)
        expected += closed.pnl
        assert closed.capital_after == expected

    stats = backtest.stats()
    assert stats.current_capital == expected
    assert stats.profit == expected - backtest.initial_capital
    assert stats.total_trades == len(round_trips)
    assert stats.max_drawdown >= 0


@given(pnls=st.lists(pnl_strategy, max_size=20))
@settings(max_examples=100)
def test_drawdown_is_zero_for_a_rising_curve(pnls: List[Decimal]):
    """
    A curve that never falls has no drawdown; any loss from a peak shows up
    as a positive drawdown.
    """
    gains = [abs(p) for p in pnls]
    assert max_drawdown(Decimal("1000"), gains) == 0
    if any(p < 0 for p in pnls):
        assert max_drawdown(Decimal("1000"), pnls) > 0
