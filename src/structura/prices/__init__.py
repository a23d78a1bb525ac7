"""Market-data ingestion and cache layer.

Architecture
------------
Write path (out-of-band, batch by batch)::

    Yahoo chart API → YahooChartClient → YahooChartAdapter → list[PriceBar]
        → HistoricalSeeder → PriceStore (upsert on symbol, date)

On-demand fill (symbols a read reported missing)::

    symbols → HistoricalSeeder.fetch_symbols → PriceStore → {fetched, data, errors}

Read path (per request)::

    PriceStore → PriceCacheReader → {data, errors, range, startDate, source}

Key abstractions:

- ``PriceBar``: Canonical OHLCV record; ``close`` is the adjusted close.
- ``SeedCursor``: Externally held batch position (``nextBatch``).
- ``PriceStore``: Persistence protocol; ``SqlitePriceStore`` implements it.
"""

from structura.prices.models import (
    CacheReadResult,
    CoverageRow,
    OnDemandResult,
    PriceBar,
    SeedCursor,
    SeedResult,
    SeedSummary,
    SymbolError,
)
from structura.prices.reader import PriceCacheReader, resolve_start_date
from structura.prices.seeder import HistoricalSeeder, incremental_range
from structura.prices.store import PriceStore, SqlitePriceStore, create_store
from structura.prices.yahoo import YahooChartAdapter, YahooChartClient

__all__ = [
    # Models
    "PriceBar",
    "SeedCursor",
    "SeedSummary",
    "SeedResult",
    "SymbolError",
    "CacheReadResult",
    "CoverageRow",
    "OnDemandResult",
    # Store
    "PriceStore",
    "SqlitePriceStore",
    "create_store",
    # Yahoo Finance
    "YahooChartAdapter",
    "YahooChartClient",
    # Seeding / reading
    "HistoricalSeeder",
    "incremental_range",
    "PriceCacheReader",
    "resolve_start_date",
]
