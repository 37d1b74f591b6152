# Data module
"""Bar models and remote bar-history providers.

The cache-first reconciler lives in :mod:`tradejournal.data.reconciler`.
"""

from tradejournal.data.models import GRANULARITY_MS, Bar, focus_window, granularity_ms
from tradejournal.data.providers import (
    BarProvider,
    BinanceFuturesProvider,
    OkxSwapProvider,
    ProviderRequest,
    TranslationTable,
    default_providers,
)

__all__ = [
    "GRANULARITY_MS",
    "Bar",
    "focus_window",
    "granularity_ms",
    "BarProvider",
    "BinanceFuturesProvider",
    "OkxSwapProvider",
    "ProviderRequest",
    "TranslationTable",
    "default_providers",
]
