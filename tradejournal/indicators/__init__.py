# Indicators module
"""Overlay series derived from bar sequences."""

from tradejournal.indicators.fractals import fractals, is_down_fractal, is_up_fractal
from tradejournal.indicators.overlays import (
    IndicatorPoint,
    MultiSeries,
    Series,
    bollinger_bands,
    exponential_moving_average,
    macd,
    moving_average,
)

__all__ = [
    "IndicatorPoint",
    "MultiSeries",
    "Series",
    "bollinger_bands",
    "exponential_moving_average",
    "macd",
    "moving_average",
    "fractals",
    "is_down_fractal",
    "is_up_fractal",
]
