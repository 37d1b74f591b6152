"""Canonical bar shape and granularity helpers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Tuple

from tradejournal.errors import UnknownGranularity


# Nominal duration of each canonical granularity token, in milliseconds.
GRANULARITY_MS: Dict[str, int] = {
    "1m": 60_000,
    "3m": 180_000,
    "5m": 300_000,
    "15m": 900_000,
    "30m": 1_800_000,
    "1h": 3_600_000,
    "2h": 7_200_000,
    "4h": 14_400_000,
    "6h": 21_600_000,
    "12h": 43_200_000,
    "1d": 86_400_000,
    "1w": 604_800_000,
}

_HOUR_MS = 3_600_000


@dataclass(frozen=True)
class Bar:
    """One OHLCV sample.

    Attributes:
        time: Open time in epoch milliseconds
        open: Opening price
        high: Highest price
        low: Lowest price
        close: Closing price
        volume: Traded base volume
    """
    time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible representation (decimals as strings)."""
        return {
            "time": self.time,
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "volume": str(self.volume),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bar":
        return cls(
            time=int(data["time"]),
            open=Decimal(str(data["open"])),
            high=Decimal(str(data["high"])),
            low=Decimal(str(data["low"])),
            close=Decimal(str(data["close"])),
            volume=Decimal(str(data["volume"])),
        )


def granularity_ms(granularity: str) -> int:
    """Return the nominal duration of ``granularity`` in milliseconds.

    Raises:
        UnknownGranularity: If the token is not a canonical granularity
    """
    try:
        return GRANULARITY_MS[granularity]
    except KeyError:
        raise UnknownGranularity(f"Unknown granularity '{granularity}'") from None


def focus_window(time: int, granularity: str) -> Tuple[int, int]:
    """Return the (start, end) range loaded around a selected chart time.

    Fine granularities get a shorter window so a single load stays around a
    thousand bars.
    """
    granularity_ms(granularity)
    if granularity == "1m":
        before_h, after_h = 6, 12
    elif granularity == "3m":
        before_h, after_h = 8, 16
    else:
        before_h, after_h = 24, 48
    return time - before_h * _HOUR_MS, time + after_h * _HOUR_MS
