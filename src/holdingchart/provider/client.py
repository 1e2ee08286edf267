from decimal import Decimal
import json
from typing import Any, Final
from urllib.parse import quote

import httpx
from loguru import logger

from holdingchart import __version__
from holdingchart.config import ProviderConfig
from holdingchart.errors import HttpStatusError, ParseError, TransportError

DEFAULT_TIMEOUT_S: Final[float] = 15.0

# Query flags that make /coins/{id} as cheap as possible; only the status matters.
_EXISTENCE_PROBE_PARAMS: Final[dict[str, str]] = {
    "localization": "false",
    "tickers": "false",
    "market_data": "false",
    "community_data": "false",
    "developer_data": "false",
    "sparkline": "false",
}


def create_http_client(
    config: ProviderConfig,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Builds the shared async HTTP client for the given provider configuration.

    The API key header is only attached when a non-blank key is configured.

    Args:
        config: The provider mode and key.
        timeout_s: Per-request timeout in seconds.
        transport: Optional transport override, used by tests.
    """
    headers = {
        "User-Agent": f"HoldingChart/{__version__}",
        "Accept": "application/json",
    }
    key = config.sanitized_key
    if key:
        headers[config.header_name] = key
    else:
        logger.warning("No CoinGecko API key configured; requests are unauthenticated.")

    return httpx.AsyncClient(
        headers=headers,
        timeout=timeout_s,
        follow_redirects=True,
        http2=True,
        transport=transport,
    )


def decode_json(response: httpx.Response) -> Any:
    """Decodes a response body, keeping every JSON number exact as a Decimal."""
    try:
        return json.loads(response.text, parse_float=Decimal)
    except json.JSONDecodeError as e:
        err_msg = f"Response from '{response.url.path}' is not valid JSON. Body: {response.text}"
        raise ParseError(err_msg, body=response.text) from e


def coin_path(coin_id: str, *suffix: str) -> str:
    """Builds a `/coins/{id}/...` path with the identifier escaped as one segment."""
    return "/".join(["/coins", quote(coin_id, safe=""), *suffix])


class CoinGeckoClient:
    """Thin wrapper over the CoinGecko REST API.

    All requests go through `get`, which maps transport failures and
    non-success statuses onto the `holdingchart.errors` taxonomy.
    """

    def __init__(self, config: ProviderConfig, http_client: httpx.AsyncClient) -> None:
        """Initializes the client.

        Args:
            config: The immutable provider configuration (mode, key).
            http_client: The async HTTP client used for every request.
        """
        self.config = config
        self.http_client = http_client

    async def get(
        self, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Issues a GET request and returns the response if its status is a success.

        Raises:
            TransportError: If the request failed without a usable response,
                including undecodable bodies and redirect loops.
            HttpStatusError: If the status code is not 2xx.
        """
        url = f"{self.config.base_url}{path}"
        logger.debug(f"GET {path} params={params}")
        try:
            response = await self.http_client.get(url, params=params)
        except httpx.RequestError as e:
            err_msg = f"Request to '{path}' failed: {type(e).__name__}: {e}"
            raise TransportError(err_msg) from e

        if not response.is_success:
            raise HttpStatusError(
                response.status_code, response.reason_phrase, response.text
            )
        return response

    async def search(self, query: str) -> list[dict[str, Any]]:
        """Runs a keyword search and returns the raw `coins` entries."""
        response = await self.get("/search", params={"query": query})
        data = decode_json(response)
        coins = data.get("coins") if isinstance(data, dict) else None
        if not isinstance(coins, list):
            err_msg = "'/search' response has no 'coins' array."
            raise ParseError(err_msg, body=response.text, keys=_keys_of(data))
        return [c for c in coins if isinstance(c, dict)]

    async def coin_exists(self, coin_id: str) -> bool:
        """Returns True if the provider knows `coin_id` (HTTP 200 on /coins/{id}).

        A failed request is reported as "does not exist" so that probing can
        move on to the next candidate.
        """
        url = f"{self.config.base_url}{coin_path(coin_id)}"
        try:
            response = await self.http_client.get(url, params=_EXISTENCE_PROBE_PARAMS)
        except httpx.RequestError as e:
            logger.warning(f"Existence probe for '{coin_id}' failed: {e}")
            return False
        logger.debug(f"Existence probe for '{coin_id}': HTTP {response.status_code}")
        return response.is_success

    async def ping(self) -> str:
        """Calls `/ping` and returns a human-readable connectivity report."""
        url = f"{self.config.base_url}/ping"
        try:
            response = await self.http_client.get(url)
        except httpx.RequestError as e:
            err_msg = f"Ping failed: {type(e).__name__}: {e}"
            raise TransportError(err_msg) from e
        return (
            f"Base: {self.config.base_url}\n"
            f"Header: {self.config.header_name}\n"
            f"Status: {response.status_code} {response.reason_phrase}\n"
            f"Body: {response.text}"
        )


def _keys_of(data: Any) -> list[str]:
    return list(data) if isinstance(data, dict) else []
