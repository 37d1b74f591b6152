"""Typed errors raised by the ledger, the indicator pipeline and the reconciler."""

from __future__ import annotations

from typing import List, Optional


class JournalError(Exception):
    """Base class for every error raised by tradejournal."""


class InvalidArgument(JournalError):
    """An argument is outside the range the operation accepts."""


class InvalidPercent(InvalidArgument):
    pass


class InvalidLeverage(InvalidArgument):
    pass


class InvalidQuantity(InvalidArgument):
    pass


class InvalidPrice(InvalidArgument):
    pass


class InvalidPeriod(InvalidArgument):
    pass


class InvalidTimeRange(InvalidArgument):
    pass


class UnknownGranularity(InvalidArgument):
    pass


class InvalidStateTransition(JournalError):
    """The operation is not allowed in the ledger's current state."""


class NoPosition(InvalidStateTransition):
    def __init__(self, message: str = "No open position") -> None:
        super().__init__(message)


class OppositePositionExists(InvalidStateTransition):
    def __init__(self, message: str = "Close the current position before opening the opposite side") -> None:
        super().__init__(message)


class PositionAlreadyOpen(InvalidStateTransition):
    def __init__(self, message: str = "Close the current position before opening a new one") -> None:
        super().__init__(message)


class ProviderFailure(JournalError):
    """A bar-history provider could not serve a request.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeout(ProviderFailure):
    pass


class UnknownSymbol(ProviderFailure):
    pass


class NoDataAvailable(JournalError):
    """Every provider in the fallback list failed.

    Attributes:
        failures: The provider failures, in fallback order
    """

    def __init__(self, message: str, failures: Optional[List[ProviderFailure]] = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])
