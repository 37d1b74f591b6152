"""Trade simulation and market-data reconciliation engine for chart journaling."""

from tradejournal.config import JournalSettings, get_settings
from tradejournal.data.models import Bar
from tradejournal.data.reconciler import FetchResult, MarketDataReconciler
from tradejournal.trading.ledger import PositionLedger
from tradejournal.trading.models import ClosedTrade, Side

__version__ = "0.1.0"

__all__ = [
    "JournalSettings",
    "get_settings",
    "Bar",
    "FetchResult",
    "MarketDataReconciler",
    "PositionLedger",
    "ClosedTrade",
    "Side",
]
