from __future__ import annotations


FETCH_ERROR_MESSAGE = "Failed to fetch stock data"


class QuoteBoardError(Exception):
    """Base error for the quote board."""


class SymbolSkipError(QuoteBoardError):
    """One symbol's data is unavailable; the cycle keeps going without it."""

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class ProviderNoDataError(SymbolSkipError):
    pass


class HardFetchError(QuoteBoardError):
    """The whole fetch cycle is aborted."""


class MissingCredentialError(HardFetchError):
    pass


class RefreshInProgressError(QuoteBoardError):
    pass
