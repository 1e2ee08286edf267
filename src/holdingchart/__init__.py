# src/holdingchart/__init__.py
"""HoldingChart: a desktop widget that tracks the fiat value of a crypto holding.

The package polls the CoinGecko market-data API for the current price and the
price history of a single asset, converts them into gross and net holding
values, and renders them in a small PySide6/pyqtgraph window.

Key sub-packages and modules:
- `provider`: CoinGecko client, identifier resolver and price/history fetchers.
- `valuation`: conversion of price samples into holding values.
- `hover`: the chart-cursor geometry engine, free of any Qt dependency.
- `ui`: the PySide6-based graphical user interface.
"""

import importlib.metadata

try:
    __version__: str = importlib.metadata.version("holdingchart")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout that was never installed.
    __version__ = "0.0.0-dev"
