from datetime import datetime
from decimal import Decimal
from typing import Final

CURRENCY_SYMBOLS: Final[dict[str, str]] = {"eur": "€", "usd": "$", "gbp": "£", "jpy": "¥"}


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency.lower(), currency.upper())


def format_money(value: Decimal, currency: str) -> str:
    """Formats a holding value with two decimals and a thousands separator."""
    return f"{currency_symbol(currency)} {value:,.2f}"


def format_price(value: Decimal, currency: str, decimals: int = 5) -> str:
    return f"{currency_symbol(currency)} {value:,.{decimals}f}"


def format_sample_time(time: datetime) -> str:
    return time.strftime("%d/%m/%Y %H:%M")


def horizon_label(horizon_days: int) -> str:
    return "24h" if horizon_days <= 1 else f"{horizon_days} days"
