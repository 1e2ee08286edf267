import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from conftest import Handler, RequestLog

from holdingchart.config import AssetSettings
from holdingchart.provider.client import CoinGeckoClient
from holdingchart.provider.resolver import IdentifierResolver, select_search_match

ClientFactory = Callable[[Handler], CoinGeckoClient]

SEARCH_PATH = "/api/v3/search"


def search_response(*coins: dict[str, Any]) -> httpx.Response:
    """Helper to build a /search response."""
    return httpx.Response(200, json={"coins": list(coins)})


def probe_handler(existing: set[str], search: httpx.Response | None = None) -> Handler:
    """Serves /search with `search` (or no coins) and 200 only for existing ids."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == SEARCH_PATH:
            return search if search is not None else search_response()
        coin_id = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200 if coin_id in existing else 404, json={})

    return handler


@pytest.fixture
def asset() -> AssetSettings:
    """Asset settings with short candidate identifiers."""
    return AssetSettings(candidate_ids=["A", "B", "C"])


@pytest.mark.asyncio
async def test_search_prefers_symbol_and_name_match(
    make_client: ClientFactory, asset: AssetSettings
) -> None:
    """An exact symbol match whose name contains the keyword wins."""
    search = search_response(
        {"id": "tai-coin", "symbol": "TAI", "name": "Tai Coin"},
        {"id": "tars-ai", "symbol": "tai", "name": "TARS AI"},
    )
    resolver = IdentifierResolver(make_client(probe_handler(set(), search)), asset)
    assert await resolver.resolve() == "tars-ai"


@pytest.mark.asyncio
async def test_search_falls_back_to_symbol_only_match(
    make_client: ClientFactory, asset: AssetSettings, request_log: RequestLog
) -> None:
    """Without a name match the first exact symbol match is used."""
    search = search_response(
        {"id": "taiko", "symbol": "taiko", "name": "Taiko"},
        {"id": "tai-coin", "symbol": "TAI", "name": "Tai Coin"},
        {"id": "tai-two", "symbol": "tai", "name": "Tai Two"},
    )
    resolver = IdentifierResolver(make_client(probe_handler(set(), search)), asset)
    assert await resolver.resolve() == "tai-coin"
    assert request_log.paths == [SEARCH_PATH]


@pytest.mark.asyncio
async def test_probing_returns_first_existing_candidate(
    make_client: ClientFactory, asset: AssetSettings, request_log: RequestLog
) -> None:
    """No symbol match in search: candidates are probed in order until one exists."""
    search = search_response({"id": "other", "symbol": "oth", "name": "Other"})
    resolver = IdentifierResolver(make_client(probe_handler({"B"}, search)), asset)

    assert await resolver.resolve() == "B"
    assert request_log.paths == [SEARCH_PATH, "/api/v3/coins/A", "/api/v3/coins/B"]
    probe = request_log.requests[1]
    assert probe.url.params["market_data"] == "false"
    assert probe.url.params["tickers"] == "false"


@pytest.mark.asyncio
async def test_unverified_first_candidate_when_everything_fails(
    make_client: ClientFactory, asset: AssetSettings, request_log: RequestLog
) -> None:
    """If no candidate exists the first one is returned anyway, and cached."""
    resolver = IdentifierResolver(make_client(probe_handler(set())), asset)

    assert await resolver.resolve() == "A"
    assert resolver.cached_id == "A"
    requests_after_first = len(request_log.requests)

    assert await resolver.resolve() == "A"
    assert len(request_log.requests) == requests_after_first


@pytest.mark.asyncio
async def test_search_http_error_is_not_fatal(
    make_client: ClientFactory, asset: AssetSettings
) -> None:
    """A failing search moves on to probing."""
    search = httpx.Response(500, text="boom")
    resolver = IdentifierResolver(make_client(probe_handler({"C"}, search)), asset)
    assert await resolver.resolve() == "C"


@pytest.mark.asyncio
async def test_transport_errors_are_not_fatal(
    make_client: ClientFactory, asset: AssetSettings
) -> None:
    """Connection failures during search and probing fall through to the default."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    resolver = IdentifierResolver(make_client(handler), asset)
    assert await resolver.resolve() == "A"


@pytest.mark.asyncio
async def test_malformed_search_body_is_not_fatal(
    make_client: ClientFactory, asset: AssetSettings
) -> None:
    """A search body without a coins array is treated as no result."""
    search = httpx.Response(200, json={"unexpected": True})
    resolver = IdentifierResolver(make_client(probe_handler({"B"}, search)), asset)
    assert await resolver.resolve() == "B"


@pytest.mark.asyncio
async def test_forced_id_makes_no_requests(
    make_client: ClientFactory, asset: AssetSettings, request_log: RequestLog
) -> None:
    """A forced identifier short-circuits resolution entirely."""
    resolver = IdentifierResolver(
        make_client(probe_handler({"B"})), asset, forced_id=" tars-protocol "
    )
    assert await resolver.resolve() == "tars-protocol"
    assert await resolver.resolve() == "tars-protocol"
    assert request_log.requests == []
    assert resolver.cached_id is None


@pytest.mark.asyncio
async def test_blank_forced_id_is_ignored(
    make_client: ClientFactory, asset: AssetSettings
) -> None:
    """A whitespace-only override does not count as configured."""
    resolver = IdentifierResolver(make_client(probe_handler({"B"})), asset, forced_id="  ")
    assert await resolver.resolve() == "B"


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_resolution(
    make_client: ClientFactory, asset: AssetSettings, request_log: RequestLog
) -> None:
    """Callers arriving while a resolution runs wait for it instead of starting another."""

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.05)
        return probe_handler({"B"})(request)

    resolver = IdentifierResolver(make_client(slow_handler), asset)
    results = await asyncio.gather(*(resolver.resolve() for _ in range(5)))

    assert results == ["B"] * 5
    assert request_log.count(SEARCH_PATH) == 1
    assert request_log.count("/api/v3/coins/A") == 1
    assert request_log.count("/api/v3/coins/B") == 1


def test_candidates_are_required(make_client: ClientFactory) -> None:
    """A resolver without candidates could not honour its fallback."""
    with pytest.raises(ValueError, match="candidate"):
        IdentifierResolver(
            make_client(probe_handler(set())), AssetSettings(candidate_ids=[])
        )


def test_select_search_match_skips_malformed_entries() -> None:
    """Entries without a usable id are ignored."""
    coins = [
        {"symbol": "tai", "name": "TARS AI"},
        {"id": None, "symbol": "tai", "name": "TARS AI"},
        {"id": "", "symbol": "tai", "name": "TARS AI"},
        {"id": "tars-ai", "symbol": "Tai", "name": "Tars AI"},
    ]
    assert select_search_match(coins, "tai", "tars") == "tars-ai"


def test_select_search_match_without_symbol_match() -> None:
    """Results for other symbols never match."""
    coins = [{"id": "tars", "symbol": "tars", "name": "TARS"}]
    assert select_search_match(coins, "tai", "tars") is None


@pytest.mark.asyncio
async def test_undecodable_search_body_is_not_fatal(
    make_client: ClientFactory, asset: AssetSettings
) -> None:
    """A search body that fails content decoding moves on to probing."""
    search = httpx.Response(
        200,
        headers={"Content-Encoding": "gzip"},
        stream=httpx.ByteStream(b'{"coins": []}'),
    )
    resolver = IdentifierResolver(make_client(probe_handler({"B"}, search)), asset)
    assert await resolver.resolve() == "B"
