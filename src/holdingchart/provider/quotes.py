from decimal import Decimal, InvalidOperation
from typing import Any

from loguru import logger

from holdingchart.errors import ParseError
from holdingchart.provider.client import CoinGeckoClient, decode_json


class PriceQuoteFetcher:
    """Fetches the current price of an asset from `/simple/price`.

    The provider sometimes answers under a different (canonical) identifier
    than the one requested, so the response is parsed leniently:

    1.  `body[coin_id][currency]` if present.
    2.  If the body has exactly one key, that entry's currency value.
    3.  The first entry holding the currency.
    4.  Otherwise a `ParseError` listing the keys that were returned.
    """

    def __init__(self, client: CoinGeckoClient) -> None:
        self._client = client

    async def get_current_price(self, coin_id: str, currency: str) -> Decimal:
        """Returns the current price of `coin_id` in `currency`.

        Raises:
            TransportError: If the request could not be sent.
            HttpStatusError: If the provider returned a non-success status.
            ParseError: If the price could not be found in the response.
        """
        currency = currency.lower()
        response = await self._client.get(
            "/simple/price", params={"ids": coin_id, "vs_currencies": currency}
        )
        data = decode_json(response)
        return extract_price(data, coin_id, currency, response.text)


def extract_price(data: Any, coin_id: str, currency: str, body: str) -> Decimal:
    """Finds the `currency` price in a decoded `/simple/price` body."""
    if not isinstance(data, dict):
        err_msg = f"Unexpected JSON structure from '/simple/price'. Body: {body}"
        raise ParseError(err_msg, body=body)

    entry = data.get(coin_id)
    if isinstance(entry, dict) and currency in entry:
        return _to_decimal(entry[currency], body)

    if len(data) == 1:
        alias, entry = next(iter(data.items()))
        if isinstance(entry, dict) and currency in entry:
            logger.info(f"'/simple/price' answered '{coin_id}' as alias '{alias}'.")
            return _to_decimal(entry[currency], body)

    for alias, entry in data.items():
        if isinstance(entry, dict) and currency in entry:
            logger.info(f"Using '{currency}' price of '{alias}' for '{coin_id}'.")
            return _to_decimal(entry[currency], body)

    keys = list(data)
    err_msg = (
        f"'/simple/price' did not return key '{coin_id}'. "
        f"Keys: [{', '.join(keys)}] • Body: {body}"
    )
    raise ParseError(err_msg, body=body, keys=keys)


def _to_decimal(value: Any, body: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        err_msg = f"Price value {value!r} is not a number. Body: {body}"
        raise ParseError(err_msg, body=body)
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        err_msg = f"Price value {value!r} is not a number. Body: {body}"
        raise ParseError(err_msg, body=body) from e
