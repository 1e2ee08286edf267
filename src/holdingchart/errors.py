"""Exceptions raised by the market-data layer.

Fetchers never swallow failures; they raise one of these to the caller, which
is expected to turn them into user-visible status text.
"""

from collections.abc import Iterable


class MarketDataError(Exception):
    """Base class for every failure talking to the market-data provider."""


class TransportError(MarketDataError):
    """The request never produced a response (connection failure, timeout)."""


class HttpStatusError(MarketDataError):
    """The provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"HTTP {status_code}: {reason} • {body}")


class ParseError(MarketDataError):
    """The response body did not have any of the expected shapes."""

    def __init__(self, message: str, body: str, keys: Iterable[str] = ()) -> None:
        self.body = body
        self.keys = list(keys)
        super().__init__(message)
