from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from tradejournal.config import JournalSettings, get_settings
from tradejournal.data.models import Bar, granularity_ms
from tradejournal.errors import ProviderFailure, UnknownGranularity, UnknownSymbol


BINANCE_FUTURES_BASE = "https://fapi.binance.com"
OKX_BASE = "https://www.okx.com"

# Binance error code for an unlisted symbol.
BINANCE_INVALID_SYMBOL = -1121
# OKX error code for an instrument that does not exist.
OKX_INSTRUMENT_NOT_FOUND = "51001"


class TranslationTable:
    """Explicit, reversible mapping between canonical and provider tokens."""

    def __init__(self, mapping: Mapping[str, str]) -> None:
        self._forward: Dict[str, str] = dict(mapping)
        self._reverse: Dict[str, str] = {v: k for k, v in self._forward.items()}
        if len(self._reverse) != len(self._forward):
            raise ValueError("Translation table is not reversible: duplicate provider tokens")

    def to_provider(self, canonical: str) -> Optional[str]:
        return self._forward.get(canonical)

    def to_canonical(self, provider_token: str) -> Optional[str]:
        return self._reverse.get(provider_token)

    def items(self) -> Iterable[tuple]:
        return self._forward.items()

    def __contains__(self, canonical: object) -> bool:
        return canonical in self._forward

    def __len__(self) -> int:
        return len(self._forward)


@dataclass
class ProviderRequest:
    """An HTTP GET against a provider, independent of any client instance."""
    url: str
    params: Dict[str, Any] = field(default_factory=dict)


class BarProvider(ABC):
    """Descriptor of one remote bar-history provider.

    The reconciler never branches on provider names: everything that differs
    between providers (symbols, granularity tokens, request shape, response
    shape, per-request cap) lives behind this interface.
    """

    name: str = ""

    def __init__(self, base_url: str, request_cap: int) -> None:
        self.base_url = base_url.rstrip("/")
        self.request_cap = int(request_cap)

    @abstractmethod
    def translate_symbol(self, symbol: str) -> str:
        """Map a canonical symbol to this provider's instrument id.

        Raises:
            UnknownSymbol: If the symbol has no mapping for this provider
        """
        ...

    @abstractmethod
    def to_canonical_symbol(self, provider_symbol: str) -> str:
        """Inverse of :meth:`translate_symbol`."""
        ...

    @abstractmethod
    def translate_granularity(self, granularity: str) -> str:
        """Map a canonical granularity token to this provider's token."""
        ...

    @abstractmethod
    def build_request(self, symbol: str, granularity: str, start_time: int, end_time: int) -> ProviderRequest:
        """Build the request for one batch covering ``[start_time, end_time]``.

        ``symbol`` and ``granularity`` are canonical; translation happens here.
        """
        ...

    @abstractmethod
    def normalize_response(self, payload: Any) -> List[Bar]:
        """Convert a decoded response body to canonical bars, ascending."""
        ...

    def parse_response(self, response: httpx.Response) -> List[Bar]:
        """Check the HTTP status, decode JSON and normalize."""
        if response.status_code >= 400:
            raise ProviderFailure(
                f"{self.name} request failed: {response.status_code} {response.reason_phrase}",
                provider=self.name,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderFailure(f"{self.name} returned invalid JSON: {e}", provider=self.name) from e
        return self.normalize_response(payload)

    def _bar_from_row(self, row: List[Any]) -> Bar:
        try:
            return Bar(
                time=int(row[0]),
                open=Decimal(str(row[1])),
                high=Decimal(str(row[2])),
                low=Decimal(str(row[3])),
                close=Decimal(str(row[4])),
                volume=Decimal(str(row[5])),
            )
        except (IndexError, TypeError, ValueError, InvalidOperation) as e:
            raise ProviderFailure(f"{self.name} returned a malformed bar {row!r}: {e}", provider=self.name) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self.base_url!r}, request_cap={self.request_cap})"


class BinanceFuturesProvider(BarProvider):
    """Binance USDT-margined futures klines.

    Canonical symbols and granularity tokens are Binance's own, so both
    translations are identity checks against the known granularity table.
    """

    name = "binance"

    def __init__(self, base_url: str = BINANCE_FUTURES_BASE, request_cap: int = 1000) -> None:
        super().__init__(base_url, request_cap)

    def _normalize_symbol(self, s: str) -> str:
        s = s.replace("/", "").replace("-", "").replace(" ", "")
        return s.upper()

    def translate_symbol(self, symbol: str) -> str:
        sym = self._normalize_symbol(symbol)
        if not sym:
            raise UnknownSymbol(f"{self.name}: empty symbol", provider=self.name)
        return sym

    def to_canonical_symbol(self, provider_symbol: str) -> str:
        return self._normalize_symbol(provider_symbol)

    def translate_granularity(self, granularity: str) -> str:
        granularity_ms(granularity)
        return granularity

    def build_request(self, symbol: str, granularity: str, start_time: int, end_time: int) -> ProviderRequest:
        return ProviderRequest(
            url=f"{self.base_url}/fapi/v1/klines",
            params={
                "symbol": self.translate_symbol(symbol),
                "interval": self.translate_granularity(granularity),
                "startTime": int(start_time),
                "endTime": int(end_time),
                "limit": self.request_cap,
            },
        )

    def parse_response(self, response: httpx.Response) -> List[Bar]:
        if response.status_code == 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if isinstance(body, dict) and body.get("code") == BINANCE_INVALID_SYMBOL:
                raise UnknownSymbol(f"{self.name}: {body.get('msg', 'Invalid symbol.')}", provider=self.name)
        return super().parse_response(response)

    def normalize_response(self, payload: Any) -> List[Bar]:
        # https://binance-docs.github.io/apidocs/futures/en/#kline-candlestick-data
        if not isinstance(payload, list):
            raise ProviderFailure(f"{self.name} returned an unexpected payload: {payload!r}", provider=self.name)
        bars = [self._bar_from_row(row) for row in payload]
        bars.sort(key=lambda b: b.time)
        return bars


# Canonical symbol -> OKX perpetual swap instrument id.
OKX_SWAP_SYMBOLS: Dict[str, str] = {
    "BTCUSDT": "BTC-USDT-SWAP",
    "ETHUSDT": "ETH-USDT-SWAP",
    "BNBUSDT": "BNB-USDT-SWAP",
    "SOLUSDT": "SOL-USDT-SWAP",
    "XRPUSDT": "XRP-USDT-SWAP",
    "DOGEUSDT": "DOGE-USDT-SWAP",
    "ADAUSDT": "ADA-USDT-SWAP",
    "AVAXUSDT": "AVAX-USDT-SWAP",
    "LINKUSDT": "LINK-USDT-SWAP",
    "DOTUSDT": "DOT-USDT-SWAP",
    "LTCUSDT": "LTC-USDT-SWAP",
    "TRXUSDT": "TRX-USDT-SWAP",
    "TONUSDT": "TON-USDT-SWAP",
    "SUIUSDT": "SUI-USDT-SWAP",
    "PEPEUSDT": "PEPE-USDT-SWAP",
}

# Canonical granularity -> OKX bar token (hours and above are upper case).
OKX_GRANULARITIES: Dict[str, str] = {
    "1m": "1m",
    "3m": "3m",
    "5m": "5m",
    "15m": "15m",
    "30m": "30m",
    "1h": "1H",
    "2h": "2H",
    "4h": "4H",
    "6h": "6H",
    "12h": "12H",
    "1d": "1D",
    "1w": "1W",
}


class OkxSwapProvider(BarProvider):
    """OKX perpetual swap candles.

    OKX returns rows newest first inside a ``{code, msg, data}`` envelope,
    with ``after``/``before`` as exclusive pagination bounds in milliseconds.
    """

    name = "okx"

    def __init__(
        self,
        base_url: str = OKX_BASE,
        request_cap: int = 300,
        symbols: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(base_url, request_cap)
        self.symbols = TranslationTable(symbols if symbols is not None else OKX_SWAP_SYMBOLS)
        self.granularities = TranslationTable(OKX_GRANULARITIES)

    def translate_symbol(self, symbol: str) -> str:
        inst_id = self.symbols.to_provider(symbol.upper())
        if inst_id is None:
            raise UnknownSymbol(f"{self.name}: no instrument mapped for {symbol}", provider=self.name)
        return inst_id

    def to_canonical_symbol(self, provider_symbol: str) -> str:
        canonical = self.symbols.to_canonical(provider_symbol)
        if canonical is None:
            raise UnknownSymbol(f"{self.name}: unmapped instrument {provider_symbol}", provider=self.name)
        return canonical

    def translate_granularity(self, granularity: str) -> str:
        token = self.granularities.to_provider(granularity)
        if token is None:
            raise UnknownGranularity(f"Unknown granularity '{granularity}'")
        return token

    def build_request(self, symbol: str, granularity: str, start_time: int, end_time: int) -> ProviderRequest:
        return ProviderRequest(
            url=f"{self.base_url}/api/v5/market/candles",
            params={
                "instId": self.translate_symbol(symbol),
                "bar": self.translate_granularity(granularity),
                # Both bounds are exclusive on OKX.
                "after": int(end_time) + 1,
                "before": int(start_time) - 1,
                "limit": self.request_cap,
            },
        )

    def normalize_response(self, payload: Any) -> List[Bar]:
        if not isinstance(payload, dict):
            raise ProviderFailure(f"{self.name} returned an unexpected payload: {payload!r}", provider=self.name)
        code = str(payload.get("code", ""))
        if code == OKX_INSTRUMENT_NOT_FOUND:
            raise UnknownSymbol(f"{self.name}: {payload.get('msg') or 'instrument does not exist'}", provider=self.name)
        if code != "0":
            raise ProviderFailure(f"{self.name} error {code}: {payload.get('msg')}", provider=self.name)
        rows = payload.get("data") or []
        bars = [self._bar_from_row(row) for row in rows]
        bars.sort(key=lambda b: b.time)
        return bars


def default_providers(settings: Optional[JournalSettings] = None) -> List[BarProvider]:
    """Return the ordered fallback list: Binance futures, then OKX swaps."""
    settings = settings or get_settings()
    return [
        BinanceFuturesProvider(settings.binance_base_url, settings.binance_request_cap),
        OkxSwapProvider(settings.okx_base_url, settings.okx_request_cap),
    ]
