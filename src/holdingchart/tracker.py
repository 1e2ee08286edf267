from datetime import datetime

from loguru import logger

from holdingchart.config import HoldingSettings
from holdingchart.models import HoldingSnapshot, ValuePoint
from holdingchart.provider.history import TimeSeriesFetcher
from holdingchart.provider.quotes import PriceQuoteFetcher
from holdingchart.provider.resolver import IdentifierResolver
from holdingchart.valuation import holding_value, transform


class HoldingTracker:
    """Ties identifier resolution, price fetching and valuation together.

    This is what the window's refresh actions and timer call. Errors from the
    provider layer (`MarketDataError` subclasses) propagate unchanged; the
    tracker performs no retries and no locking of its own, so overlapping
    calls each run to completion independently.
    """

    def __init__(
        self,
        resolver: IdentifierResolver,
        quotes: PriceQuoteFetcher,
        history: TimeSeriesFetcher,
        holding: HoldingSettings,
        currency: str,
    ) -> None:
        self._resolver = resolver
        self._quotes = quotes
        self._history = history
        self._holding = holding
        self.currency = currency

    async def current_value(self) -> HoldingSnapshot:
        """Fetches the current price and values the holding at it."""
        coin_id = await self._resolver.resolve()
        price = await self._quotes.get_current_price(coin_id, self.currency)
        gross, net = holding_value(
            price, self._holding.quantity, self._holding.fee_percent
        )
        logger.debug(f"Current price of '{coin_id}': {price} {self.currency}")
        return HoldingSnapshot(
            price=price, gross=gross, net=net, fetched_at=datetime.now().astimezone()
        )

    async def value_history(self, horizon_days: int) -> list[ValuePoint]:
        """Fetches the price history for `horizon_days` and values the holding at each sample."""
        coin_id = await self._resolver.resolve()
        prices = await self._history.get_history(coin_id, horizon_days, self.currency)
        return transform(prices, self._holding.quantity, self._holding.fee_percent)
