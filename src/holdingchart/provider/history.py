from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Final

from loguru import logger

from holdingchart.errors import ParseError
from holdingchart.models import PricePoint
from holdingchart.provider.client import CoinGeckoClient, coin_path, decode_json

DAILY_INTERVAL: Final[str] = "daily"


def history_params(horizon_days: int, currency: str) -> dict[str, Any]:
    """Builds the `market_chart` query for a horizon.

    A horizon of one day or less leaves the interval to the provider, which
    then returns its fine-grained (roughly five-minute) resolution; longer
    horizons ask for one sample per day.
    """
    if horizon_days < 1:
        err_msg = f"Horizon must be at least one day, got {horizon_days}."
        raise ValueError(err_msg)
    params: dict[str, Any] = {"vs_currency": currency.lower(), "days": horizon_days}
    if horizon_days > 1:
        params["interval"] = DAILY_INTERVAL
    return params


class TimeSeriesFetcher:
    """Fetches historical prices from `/coins/{id}/market_chart`."""

    def __init__(self, client: CoinGeckoClient) -> None:
        self._client = client

    async def get_history(
        self, coin_id: str, horizon_days: int, currency: str
    ) -> list[PricePoint]:
        """Returns the price series of the last `horizon_days` days, oldest first.

        Samples are kept in the order the provider returned them. Timestamps
        are converted to local wall-clock time.

        Raises:
            ValueError: If `horizon_days` is smaller than one.
            TransportError: If the request could not be sent.
            HttpStatusError: If the provider returned a non-success status.
            ParseError: If the `prices` array is missing or malformed.
        """
        params = history_params(horizon_days, currency)
        response = await self._client.get(
            coin_path(coin_id, "market_chart"), params=params
        )
        points = parse_prices(decode_json(response), response.text)
        logger.info(
            f"Fetched {len(points)} price samples for '{coin_id}' over {horizon_days}d."
        )
        return points


def parse_prices(data: Any, body: str) -> list[PricePoint]:
    """Parses the `[[timestamp_ms, price], ...]` array of a market_chart body."""
    prices = data.get("prices") if isinstance(data, dict) else None
    if not isinstance(prices, list):
        keys = list(data) if isinstance(data, dict) else []
        err_msg = f"'market_chart' response has no 'prices' array. Keys: {keys}"
        raise ParseError(err_msg, body=body, keys=keys)

    points: list[PricePoint] = []
    for sample in prices:
        try:
            ts_ms, price = sample[0], sample[1]
            utc_time = datetime.fromtimestamp(int(ts_ms) / 1000, tz=timezone.utc)
            time = utc_time.astimezone()
            points.append(PricePoint(time=time, price=Decimal(str(price))))
        except (TypeError, ValueError, LookupError, ArithmeticError, OSError) as e:
            err_msg = f"Malformed price sample {sample!r} in 'market_chart' response."
            raise ParseError(err_msg, body=body) from e
    return points
