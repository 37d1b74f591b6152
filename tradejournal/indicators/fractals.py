"""Bill Williams fractals: 5-bar swing highs and lows."""

from __future__ import annotations

from typing import Sequence

from tradejournal.data.models import Bar
from tradejournal.indicators.overlays import IndicatorPoint, MultiSeries, Series

# Bars on each side of the candidate.
FRACTAL_WING = 2


def is_up_fractal(bars: Sequence[Bar], i: int) -> bool:
    """True if bar ``i``'s high is above the highs of the two bars on each side."""
    if i < FRACTAL_WING or i >= len(bars) - FRACTAL_WING:
        return False
    high = bars[i].high
    return all(high > bars[j].high for j in range(i - FRACTAL_WING, i + FRACTAL_WING + 1) if j != i)


def is_down_fractal(bars: Sequence[Bar], i: int) -> bool:
    """True if bar ``i``'s low is below the lows of the two bars on each side."""
    if i < FRACTAL_WING or i >= len(bars) - FRACTAL_WING:
        return False
    low = bars[i].low
    return all(low < bars[j].low for j in range(i - FRACTAL_WING, i + FRACTAL_WING + 1) if j != i)


def fractals(bars: Sequence[Bar]) -> MultiSeries:
    """Find up (resistance) and down (support) fractals.

    Returns:
        ``{"up": [...], "down": [...], "line": [...]}``. ``up`` points carry the
        bar's high, ``down`` points its low. ``line`` joins all markers in time
        order; a bar that is both an up and a down fractal appears there once,
        with its high.
    """
    up: Series = []
    down: Series = []
    line: Series = []
    for i in range(FRACTAL_WING, len(bars) - FRACTAL_WING):
        bar = bars[i]
        is_up = is_up_fractal(bars, i)
        is_down = is_down_fractal(bars, i)
        if is_up:
            up.append(IndicatorPoint(bar.time, bar.high))
        if is_down:
            down.append(IndicatorPoint(bar.time, bar.low))
        if is_up:
            line.append(IndicatorPoint(bar.time, bar.high))
        elif is_down:
            line.append(IndicatorPoint(bar.time, bar.low))
    return {"up": up, "down": down, "line": line}
