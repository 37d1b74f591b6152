"""Moving-average style overlays computed from closing prices.

Every function here is pure: it reads the bar sequence and returns new
lists, so the same input always yields the same output.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Sequence

from tradejournal.data.models import Bar
from tradejournal.errors import InvalidArgument, InvalidPeriod


@dataclass(frozen=True)
class IndicatorPoint:
    """One value of an indicator line at a bar's time."""
    time: int
    value: Decimal


Series = List[IndicatorPoint]
MultiSeries = Dict[str, Series]


def _check_period(period: int, name: str = "period") -> None:
    if isinstance(period, bool) or not isinstance(period, int) or period < 1:
        raise InvalidPeriod(f"{name} must be a positive integer, got {period!r}")


def _ema_values(values: Sequence[Decimal], period: int) -> List[Decimal]:
    """EMA of ``values``; element j corresponds to ``values[period - 1 + j]``."""
    if len(values) < period:
        return []
    k = Decimal(2) / Decimal(period + 1)
    ema = sum(values[:period], Decimal(0)) / period
    out = [ema]
    for value in values[period:]:
        ema = value * k + ema * (1 - k)
        out.append(ema)
    return out


def moving_average(bars: Sequence[Bar], period: int) -> Series:
    """Simple moving average of closes.

    Keeps a running window sum: the close entering the window is added and
    the one leaving it is subtracted, so the cost is linear in ``len(bars)``.

    Args:
        bars: Bars in ascending time order
        period: Window length

    Returns:
        ``max(0, len(bars) - period + 1)`` points, the first at index ``period - 1``
    """
    _check_period(period)
    result: Series = []
    window_sum = Decimal(0)
    for i, bar in enumerate(bars):
        window_sum += bar.close
        if i >= period:
            window_sum -= bars[i - period].close
        if i >= period - 1:
            result.append(IndicatorPoint(bar.time, window_sum / period))
    return result


def exponential_moving_average(bars: Sequence[Bar], period: int) -> Series:
    """Exponential moving average of closes.

    Seeded with the simple average of the first ``period`` closes, then
    smoothed with ``k = 2 / (period + 1)``.

    Args:
        bars: Bars in ascending time order
        period: Smoothing period

    Returns:
        Points from index ``period - 1`` on; empty when ``len(bars) < period``
    """
    _check_period(period)
    values = _ema_values([b.close for b in bars], period)
    return [IndicatorPoint(bars[period - 1 + j].time, v) for j, v in enumerate(values)]


def bollinger_bands(bars: Sequence[Bar], period: int = 20, multiplier: Decimal | int | str = 2) -> MultiSeries:
    """Bollinger Bands around a simple moving average.

    The standard deviation is the population deviation of the closes in the
    same trailing window as the middle line.

    Args:
        bars: Bars in ascending time order
        period: Window length
        multiplier: Standard deviations between the middle and outer lines

    Returns:
        ``{"upper": [...], "middle": [...], "lower": [...]}`` sharing one time axis
    """
    _check_period(period)
    mult = Decimal(str(multiplier))
    if mult < 0:
        raise InvalidArgument(f"multiplier must not be negative, got {multiplier!r}")

    middle = moving_average(bars, period)
    upper: Series = []
    lower: Series = []
    for offset, point in enumerate(middle):
        window = bars[offset:offset + period]
        variance = sum(((b.close - point.value) ** 2 for b in window), Decimal(0)) / period
        band = mult * variance.sqrt()
        upper.append(IndicatorPoint(point.time, point.value + band))
        lower.append(IndicatorPoint(point.time, point.value - band))
    return {"upper": upper, "middle": middle, "lower": lower}


def macd(
    bars: Sequence[Bar],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MultiSeries:
    """Moving Average Convergence Divergence.

    The MACD line is ``EMA(fast) - EMA(slow)`` at the times both EMAs cover.
    The signal line is an EMA of the MACD line and the histogram is their
    difference at the signal line's times.

    Returns:
        ``{"macd": [...], "signal": [...], "histogram": [...]}``
    """
    _check_period(fast_period, "fast_period")
    _check_period(slow_period, "slow_period")
    _check_period(signal_period, "signal_period")

    fast = {p.time: p.value for p in exponential_moving_average(bars, fast_period)}
    slow = exponential_moving_average(bars, slow_period)
    macd_line: Series = [
        IndicatorPoint(p.time, fast[p.time] - p.value) for p in slow if p.time in fast
    ]

    signal_values = _ema_values([p.value for p in macd_line], signal_period)
    signal_line: Series = []
    histogram: Series = []
    for j, value in enumerate(signal_values):
        point = macd_line[signal_period - 1 + j]
        signal_line.append(IndicatorPoint(point.time, value))
        histogram.append(IndicatorPoint(point.time, point.value - value))
    return {"macd": macd_line, "signal": signal_line, "histogram": histogram}
