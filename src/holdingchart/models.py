from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class PricePoint:
    """A single price sample as returned by the provider (local wall-clock time)."""

    time: datetime
    price: Decimal


@dataclass(frozen=True, slots=True)
class ValuePoint:
    """The value of the holding at one sample time, before and after fees."""

    time: datetime
    gross: Decimal
    net: Decimal


@dataclass(frozen=True, slots=True)
class HoldingSnapshot:
    """The result of one summary refresh."""

    price: Decimal
    gross: Decimal
    net: Decimal
    fetched_at: datetime
