from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from holdingchart.models import PricePoint
from holdingchart.valuation import holding_value, transform


def make_prices(prices: list[str]) -> list[PricePoint]:
    """Helper to build an hourly price series starting at a fixed time."""
    start = datetime(2024, 5, 1, tzinfo=timezone.utc)
    return [
        PricePoint(time=start + timedelta(hours=i), price=Decimal(p))
        for i, p in enumerate(prices)
    ]


def test_holding_value_reference_example() -> None:
    """30000 units at 2.00 with a 1.49% fee."""
    gross, net = holding_value(Decimal("2.00"), Decimal("30000"), Decimal("1.49"))
    assert gross == Decimal("60000.00")
    assert net == Decimal("59106.00")


@pytest.mark.parametrize("quantity", ["0", "1", "30000", "0.5"])
@pytest.mark.parametrize("fee_percent", ["0", "1.49", "50", "100"])
def test_net_never_exceeds_gross(quantity: str, fee_percent: str) -> None:
    """The net value is the gross value minus the fee, and never above it."""
    gross, net = holding_value(Decimal("0.0123"), Decimal(quantity), Decimal(fee_percent))
    assert net == gross * (1 - Decimal(fee_percent) / 100)
    assert net <= gross


def test_full_fee_leaves_nothing() -> None:
    """A 100% fee yields a net value of zero."""
    _, net = holding_value(Decimal("3"), Decimal("10"), Decimal("100"))
    assert net == 0


def test_transform_preserves_length_and_order() -> None:
    """Each price sample maps to exactly one value sample at the same index."""
    prices = make_prices(["1.0", "1.5", "0.75", "2.0"])
    series = transform(prices, Decimal("10"), Decimal("1"))

    assert len(series) == len(prices)
    assert [p.time for p in series] == [p.time for p in prices]
    assert [p.gross for p in series] == [Decimal("10.0"), Decimal("15.0"), Decimal("7.50"), Decimal("20.0")]
    assert series[2].net == Decimal("7.50") * Decimal("0.99")


def test_transform_does_not_round() -> None:
    """Values keep their full precision."""
    series = transform(make_prices(["0.000123456789"]), Decimal("3"), Decimal("0"))
    assert series[0].gross == Decimal("0.000370370367")


def test_transform_of_empty_series() -> None:
    """An empty price series produces an empty value series."""
    assert transform([], Decimal("1"), Decimal("1")) == []
