"""Bar cache interfaces and implementations.

Provides the abstract cache the reconciler reads before going to the
network, an in-memory implementation and a JSON file implementation.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from tradejournal.config import JournalSettings, get_settings
from tradejournal.data.models import Bar

logger = logging.getLogger(__name__)


class IBarCache(ABC):
    """Abstract key-value store for bars.

    Entries are addressed by ``(symbol, granularity, bar.time)``. Writing a
    bar whose key already exists replaces it (last write wins).
    """

    @abstractmethod
    def get(self, symbol: str, granularity: str, start_time: int, end_time: int) -> List[Bar]:
        """Return cached bars with ``start_time <= time <= end_time``.

        Args:
            symbol: Canonical symbol (e.g. "BTCUSDT")
            granularity: Canonical granularity token (e.g. "1h")
            start_time: Range start, epoch ms, inclusive
            end_time: Range end, epoch ms, inclusive

        Returns:
            Bars in ascending time order (possibly empty)
        """
        ...

    @abstractmethod
    def put(self, symbol: str, granularity: str, bars: Iterable[Bar]) -> None:
        """Insert or overwrite bars.

        Args:
            symbol: Canonical symbol
            granularity: Canonical granularity token
            bars: Bars to store
        """
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every cached bar."""
        ...


def _select(series: Dict[int, Bar], start_time: int, end_time: int) -> List[Bar]:
    return [series[t] for t in sorted(series) if start_time <= t <= end_time]


class MemoryBarCache(IBarCache):
    """Process-local cache backed by dictionaries."""

    def __init__(self) -> None:
        self._series: Dict[Tuple[str, str], Dict[int, Bar]] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str, granularity: str, start_time: int, end_time: int) -> List[Bar]:
        with self._lock:
            series = self._series.get((symbol, granularity), {})
            return _select(series, start_time, end_time)

    def put(self, symbol: str, granularity: str, bars: Iterable[Bar]) -> None:
        with self._lock:
            series = self._series.setdefault((symbol, granularity), {})
            for bar in bars:
                series[bar.time] = bar

    def clear(self) -> None:
        with self._lock:
            self._series.clear()


class JsonFileBarCache(IBarCache):
    """JSON file-based bar cache.

    Stores each (symbol, granularity) series as a separate JSON file in the
    base directory, mapping bar time to the bar's fields. Prices are written
    as strings so decimals survive the round trip exactly.
    """

    def __init__(self, base_path: str | Path) -> None:
        """Initialize the JSON file cache.

        Args:
            base_path: Directory path where JSON files will be stored
        """
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _get_file_path(self, symbol: str, granularity: str) -> Path:
        key = f"{symbol}_{granularity}"
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._base_path / f"{safe_key}.json"

    def _load_series(self, file_path: Path) -> Dict[int, Bar]:
        if not file_path.exists():
            return {}
        try:
            with file_path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            return {int(t): Bar.from_dict(item) for t, item in raw.items()}
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.error(f"Corrupted bar cache '{file_path.name}': {e}")
            return {}
        except OSError as e:
            logger.error(f"Failed to load bar cache '{file_path.name}': {e}")
            return {}

    def get(self, symbol: str, granularity: str, start_time: int, end_time: int) -> List[Bar]:
        with self._lock:
            series = self._load_series(self._get_file_path(symbol, granularity))
        return _select(series, start_time, end_time)

    def put(self, symbol: str, granularity: str, bars: Iterable[Bar]) -> None:
        """Merge bars into the series file.

        Raises:
            OSError: If the file cannot be written
        """
        file_path = self._get_file_path(symbol, granularity)
        with self._lock:
            series = self._load_series(file_path)
            for bar in bars:
                series[bar.time] = bar
            payload = {str(t): series[t].to_dict() for t in sorted(series)}
            try:
                with file_path.open("w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
            except OSError as e:
                logger.error(f"Failed to save bar cache '{file_path.name}': {e}")
                raise

    def clear(self) -> None:
        with self._lock:
            for file_path in self._base_path.glob("*.json"):
                try:
                    file_path.unlink()
                except OSError as e:
                    logger.error(f"Failed to delete bar cache '{file_path.name}': {e}")


def cache_from_settings(settings: Optional[JournalSettings] = None) -> IBarCache:
    """Return a JSON file cache under ``settings.cache_dir``, or a memory cache when unset."""
    settings = settings or get_settings()
    if settings.cache_dir:
        return JsonFileBarCache(settings.cache_dir)
    return MemoryBarCache()
