# src/holdingchart/provider/__init__.py
"""CoinGecko market-data access.

`client` owns the HTTP details (base URL, API-key header, status and JSON
handling). `resolver` finds the provider identifier of the tracked asset and
caches it; `quotes` and `history` fetch the current price and the price series
for an already resolved identifier.
"""
