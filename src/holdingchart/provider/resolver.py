import asyncio
from collections.abc import Sequence
from typing import Any

from loguru import logger

from holdingchart.config import AssetSettings
from holdingchart.errors import MarketDataError
from holdingchart.provider.client import CoinGeckoClient


class IdentifierResolver:
    """Resolves and caches the CoinGecko identifier of the tracked asset.

    Resolution order:
    1.  A forced identifier, if configured, is returned without any request.
    2.  A previously resolved identifier is returned from the cache.
    3.  Otherwise a single resolution runs under an `asyncio.Lock`; callers
        arriving meanwhile wait for it and reuse its result. The resolution
        tries a keyword search, then probes the candidate identifiers for
        existence, and finally falls back to the first candidate unverified.

    The lock has no timeout. If a resolution hangs, every waiter hangs with
    it until the awaiting task is cancelled.
    """

    def __init__(
        self,
        client: CoinGeckoClient,
        asset: AssetSettings,
        forced_id: str | None = None,
    ) -> None:
        """Initializes the resolver.

        Args:
            client: The CoinGecko client used for search and existence probes.
            asset: Search term, symbol, name keyword and candidate identifiers.
            forced_id: An identifier that overrides resolution entirely.
        """
        if not asset.candidate_ids:
            err_msg = "At least one candidate identifier is required."
            raise ValueError(err_msg)
        self._client = client
        self._asset = asset
        self._forced_id = (forced_id or "").strip() or None
        self._resolved_id: str | None = None
        self._gate = asyncio.Lock()

    @property
    def cached_id(self) -> str | None:
        """The resolved identifier, or None if resolution has not completed yet."""
        return self._resolved_id

    async def resolve(self) -> str:
        """Returns the provider identifier of the tracked asset."""
        if self._forced_id:
            return self._forced_id

        if self._resolved_id is not None:
            return self._resolved_id

        async with self._gate:
            if self._resolved_id is not None:
                return self._resolved_id

            coin_id = await self._resolve_by_search()
            if coin_id is None:
                coin_id = await self._resolve_by_probing(self._asset.candidate_ids)
            if coin_id is None:
                coin_id = self._asset.candidate_ids[0]
                # TODO: surface this as an error once the UI can show a degraded state.
                logger.warning(
                    f"Could not verify any identifier for '{self._asset.symbol}'. "
                    f"Falling back to unverified '{coin_id}'."
                )

            self._resolved_id = coin_id
            logger.info(f"Resolved '{self._asset.symbol}' to CoinGecko id '{coin_id}'.")
            return coin_id

    async def _resolve_by_search(self) -> str | None:
        try:
            coins = await self._client.search(self._asset.search_query)
        except MarketDataError as e:
            logger.warning(f"Search for '{self._asset.search_query}' failed: {e}")
            return None

        coin_id = select_search_match(coins, self._asset.symbol, self._asset.name_keyword)
        if coin_id is None:
            logger.info(
                f"Search for '{self._asset.search_query}' returned {len(coins)} coins, "
                f"none with symbol '{self._asset.symbol}'."
            )
        return coin_id

    async def _resolve_by_probing(self, candidates: Sequence[str]) -> str | None:
        for candidate in candidates:
            if await self._client.coin_exists(candidate):
                logger.info(f"Candidate '{candidate}' exists.")
                return candidate
        return None


def select_search_match(
    coins: Sequence[dict[str, Any]], symbol: str, name_keyword: str
) -> str | None:
    """Picks the identifier for `symbol` from search results.

    An entry whose symbol matches exactly (case-insensitive) and whose name
    contains `name_keyword` wins; otherwise the first exact symbol match is
    used. Entries without a usable string `id` are ignored.
    """
    symbol = symbol.casefold()
    keyword = name_keyword.casefold()

    symbol_matches = [
        coin
        for coin in coins
        if isinstance(coin.get("id"), str)
        and coin["id"]
        and str(coin.get("symbol") or "").casefold() == symbol
    ]
    for coin in symbol_matches:
        if keyword in str(coin.get("name") or "").casefold():
            return coin["id"]
    if symbol_matches:
        return symbol_matches[0]["id"]
    return None
