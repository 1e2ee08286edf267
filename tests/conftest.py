from collections.abc import Awaitable, Callable

import httpx
import pytest

from holdingchart.config import ProviderConfig
from holdingchart.provider.client import CoinGeckoClient

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


class RequestLog:
    """Collects the requests a mock transport has seen."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def count(self, path: str) -> int:
        return self.paths.count(path)


@pytest.fixture
def request_log() -> RequestLog:
    """Provides an empty request log."""
    return RequestLog()


@pytest.fixture
def make_client(request_log: RequestLog) -> Callable[[Handler], CoinGeckoClient]:
    """Builds a CoinGeckoClient whose HTTP traffic is served by `handler`."""

    def factory(handler: Handler) -> CoinGeckoClient:
        async def recording_handler(request: httpx.Request) -> httpx.Response:
            request_log.requests.append(request)
            response = handler(request)
            if not isinstance(response, httpx.Response):
                response = await response
            return response

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        return CoinGeckoClient(ProviderConfig(), http_client)

    return factory
