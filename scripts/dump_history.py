#!/usr/bin/env python
r"""A command-line utility to print the value history of the holding as CSV.

It goes through the same resolver, fetcher and valuation code as the widget,
which makes it handy for checking identifier resolution and API access
without starting the UI.

Usage:
    python scripts/dump_history.py [--days N] [--currency CCY] [--coin-id ID]

Example:
    python scripts/dump_history.py --days 7 > tai_7d.csv
"""

import argparse
import asyncio
import csv
import sys

from loguru import logger

from holdingchart.config import Settings
from holdingchart.errors import MarketDataError
from holdingchart.logging_config import setup_logging
from holdingchart.provider.client import CoinGeckoClient, create_http_client
from holdingchart.provider.history import TimeSeriesFetcher
from holdingchart.provider.quotes import PriceQuoteFetcher
from holdingchart.provider.resolver import IdentifierResolver
from holdingchart.tracker import HoldingTracker


def positive_days(value: str) -> int:
    """Argparse type for a history horizon of at least one day."""
    try:
        days = int(value)
    except ValueError as e:
        err_msg = f"'{value}' is not a whole number of days."
        raise argparse.ArgumentTypeError(err_msg) from e
    if days < 1:
        err_msg = f"--days must be at least 1, got {days}."
        raise argparse.ArgumentTypeError(err_msg)
    return days


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--days", type=positive_days, default=1, help="History horizon in days.")
    parser.add_argument("--currency", help="Fiat currency (defaults to the configured one).")
    parser.add_argument("--coin-id", help="Skip resolution and use this CoinGecko id.")
    return parser.parse_args(argv)


async def dump_history(args: argparse.Namespace) -> int:
    settings = Settings.get_instance()
    provider_config = settings.provider_config()
    currency = args.currency or settings.asset.currency

    async with create_http_client(provider_config, settings.api.chart_timeout_s) as http:
        client = CoinGeckoClient(provider_config, http)
        resolver = IdentifierResolver(
            client, settings.asset, forced_id=args.coin_id or settings.forced_coin_id
        )
        tracker = HoldingTracker(
            resolver,
            PriceQuoteFetcher(client),
            TimeSeriesFetcher(client),
            settings.holding,
            currency,
        )
        try:
            series = await tracker.value_history(args.days)
        except MarketDataError as e:
            logger.error(f"Could not fetch history: {e}")
            return 1

    writer = csv.writer(sys.stdout)
    writer.writerow(["time", "gross", "net"])
    for point in series:
        writer.writerow([point.time.isoformat(), point.gross, point.net])
    logger.success(f"Wrote {len(series)} rows.")
    return 0


def main() -> int:
    args = parse_args(sys.argv[1:])
    setup_logging(console_level="INFO")
    return asyncio.run(dump_history(args))


if __name__ == "__main__":
    sys.exit(main())
