"""Cache-first bar retrieval with concurrent batching and provider fallback."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

import httpx

from tradejournal.config import JournalSettings, get_settings
from tradejournal.data.models import Bar, granularity_ms
from tradejournal.data.providers import BarProvider, ProviderRequest, default_providers
from tradejournal.errors import (
    InvalidTimeRange,
    NoDataAvailable,
    ProviderFailure,
    ProviderTimeout,
)
from tradejournal.storage.cache import IBarCache
from tradejournal.util.env import make_ssl_context

logger = logging.getLogger(__name__)

CACHE_SOURCE = "cache"


@dataclass(frozen=True)
class FetchResult:
    """Bars returned by the reconciler.

    Attributes:
        bars: Bars in ascending time order
        source: "cache" or the name of the provider that served the bars
    """
    bars: Tuple[Bar, ...]
    source: str

    def __len__(self) -> int:
        return len(self.bars)


def expected_bar_count(start_time: int, end_time: int, granularity: str) -> int:
    """Number of bars a gap-free series over the range would contain."""
    return math.ceil((end_time - start_time) / granularity_ms(granularity))


def split_batches(start_time: int, end_time: int, granularity: str, cap: int) -> List[Tuple[int, int]]:
    """Split ``[start_time, end_time]`` into inclusive ranges of at most ``cap`` bar times.

    Batches do not overlap: each one starts a step after the previous end.
    """
    step = granularity_ms(granularity)
    if cap < 1:
        raise ValueError(f"Request cap must be positive, got {cap}")
    batches = []
    batch_start = start_time
    while batch_start <= end_time:
        batch_end = min(batch_start + (cap - 1) * step, end_time)
        batches.append((batch_start, batch_end))
        batch_start = batch_end + step
    return batches


class MarketDataReconciler:
    """Produces a time-ascending bar series for (symbol, granularity, range).

    The local cache is tried first and accepted when it holds at least
    ``cache_sufficiency_ratio`` of the expected bars. Otherwise providers are
    tried one after another; each provider's batches are fetched concurrently
    and any failing batch fails that provider as a whole.
    """

    def __init__(
        self,
        providers: Optional[Sequence[BarProvider]] = None,
        cache: Optional[IBarCache] = None,
        settings: Optional[JournalSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            providers: Ordered fallback list (default: Binance futures, OKX swaps)
            cache: Local bar cache; None disables caching
            settings: Settings override (default: environment settings)
            client: HTTP client handed over to the reconciler and closed by
                :meth:`aclose`; when None a client is opened per fetch
        """
        self._settings = settings or get_settings()
        self._providers: List[BarProvider] = list(
            providers if providers is not None else default_providers(self._settings)
        )
        if not self._providers:
            raise ValueError("At least one provider is required")
        self._cache = cache
        self._client = client

    @property
    def providers(self) -> List[BarProvider]:
        return list(self._providers)

    async def fetch_bars(
        self,
        symbol: str,
        granularity: str,
        start_time: int,
        end_time: int,
        timeout: Optional[float] = None,
    ) -> FetchResult:
        """Return bars covering ``[start_time, end_time]``.

        Args:
            symbol: Canonical symbol (e.g. "BTCUSDT")
            granularity: Canonical granularity token (e.g. "1h")
            start_time: Range start, epoch ms
            end_time: Range end, epoch ms
            timeout: Per-provider timeout in seconds (default from settings)

        Returns:
            FetchResult with ascending bars and the source that served them

        Raises:
            InvalidTimeRange: If ``end_time <= start_time``
            UnknownGranularity: If the granularity token is unknown
            NoDataAvailable: If the cache is insufficient and every provider failed
        """
        if end_time <= start_time:
            raise InvalidTimeRange(f"end_time ({end_time}) must be after start_time ({start_time})")
        expected = expected_bar_count(start_time, end_time, granularity)
        timeout = timeout if timeout is not None else self._settings.request_timeout_s

        cached = await self._read_cache(symbol, granularity, start_time, end_time)
        threshold = Decimal(str(self._settings.cache_sufficiency_ratio)) * expected
        if len(cached) >= threshold:
            logger.info(f"Cache hit: {symbol}:{granularity} ({len(cached)}/{expected} bars)")
            return FetchResult(tuple(sorted(cached, key=lambda b: b.time)), CACHE_SOURCE)
        logger.info(f"Cache insufficient: {symbol}:{granularity} ({len(cached)}/{expected} bars), fetching")

        failures: List[ProviderFailure] = []
        for provider in self._providers:
            try:
                bars = await self._fetch_from_provider(provider, symbol, granularity, start_time, end_time, timeout)
            except ProviderFailure as e:
                logger.warning(f"[{provider.name}] fetch failed for {symbol}:{granularity}: {e}")
                failures.append(e)
                continue
            logger.info(f"[{provider.name}] fetched {len(bars)} bars for {symbol}:{granularity}")
            await self._write_cache(symbol, granularity, bars)
            return FetchResult(tuple(bars), provider.name)

        names = ", ".join(p.name for p in self._providers)
        raise NoDataAvailable(f"No data for {symbol} {granularity} from any provider ({names})", failures)

    async def _fetch_from_provider(
        self,
        provider: BarProvider,
        symbol: str,
        granularity: str,
        start_time: int,
        end_time: int,
        timeout: float,
    ) -> List[Bar]:
        batches = split_batches(start_time, end_time, granularity, provider.request_cap)
        # Translation errors surface before any request is sent.
        requests = [provider.build_request(symbol, granularity, s, e) for s, e in batches]

        if self._client is not None:
            results = await self._gather(provider, self._client, requests, timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout, verify=make_ssl_context()) as client:
                results = await self._gather(provider, client, requests, timeout)

        merged = {}
        for batch in results:
            for bar in batch:
                if start_time <= bar.time <= end_time:
                    merged[bar.time] = bar
        if not merged:
            raise ProviderFailure(f"{provider.name} returned no bars", provider=provider.name)
        return [merged[t] for t in sorted(merged)]

    async def _gather(
        self,
        provider: BarProvider,
        client: httpx.AsyncClient,
        requests: List[ProviderRequest],
        timeout: float,
    ) -> List[List[Bar]]:
        tasks = [asyncio.ensure_future(self._fetch_batch(provider, client, req, timeout)) for req in requests]
        try:
            return await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(f"{provider.name} timed out after {timeout}s", provider=provider.name) from e
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Collect every outcome so failed or cancelled siblings are not
            # reported as unretrieved task exceptions.
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fetch_batch(self, provider: BarProvider, client: httpx.AsyncClient, request: ProviderRequest, timeout: float) -> List[Bar]:
        try:
            response = await client.get(request.url, params=request.params, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{provider.name} timed out after {timeout}s", provider=provider.name) from e
        except httpx.HTTPError as e:
            raise ProviderFailure(f"{provider.name} network error: {e}", provider=provider.name) from e
        return provider.parse_response(response)

    async def _read_cache(self, symbol: str, granularity: str, start_time: int, end_time: int) -> List[Bar]:
        if self._cache is None:
            return []
        try:
            # File caches do blocking I/O; keep it off the event loop.
            return list(await asyncio.to_thread(self._cache.get, symbol, granularity, start_time, end_time))
        except Exception as e:
            logger.warning(f"Cache read failed for {symbol}:{granularity}, treating as empty: {e}")
            return []

    async def _write_cache(self, symbol: str, granularity: str, bars: List[Bar]) -> None:
        if self._cache is None:
            return
        try:
            await asyncio.to_thread(self._cache.put, symbol, granularity, bars)
        except Exception as e:
            logger.error(f"Failed to cache {len(bars)} bars for {symbol}:{granularity}: {e}")

    def clear_cache(self) -> None:
        """Drop every cached bar."""
        if self._cache is not None:
            self._cache.clear()

    async def aclose(self) -> None:
        """Close the client handed to the constructor.

        Passing ``client`` hands it over to the reconciler, so leaving an
        ``async with`` block closes it. Without one, each fetch opens and
        closes its own client and there is nothing to close here.
        """
        if self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "MarketDataReconciler":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
