from collections.abc import Iterable
from decimal import Decimal
from typing import Final

from holdingchart.models import PricePoint, ValuePoint

HUNDRED: Final[Decimal] = Decimal(100)


def holding_value(
    price: Decimal, quantity: Decimal, fee_percent: Decimal
) -> tuple[Decimal, Decimal]:
    """Returns the (gross, net) value of `quantity` units at `price`.

    The net value deducts `fee_percent` (0-100) from the gross value. No
    rounding is applied; that is left to presentation.
    """
    gross = quantity * price
    net = gross * (1 - fee_percent / HUNDRED)
    return gross, net


def transform(
    prices: Iterable[PricePoint], quantity: Decimal, fee_percent: Decimal
) -> list[ValuePoint]:
    """Converts a price series into a value series of the same length and order."""
    series: list[ValuePoint] = []
    for point in prices:
        gross, net = holding_value(point.price, quantity, fee_percent)
        series.append(ValuePoint(time=point.time, gross=gross, net=net))
    return series
