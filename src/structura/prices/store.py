"""SQLite-backed price cache.

Rows are keyed by ``(symbol, date)``; every write is an upsert on that key,
so re-seeding the same window never duplicates history.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite

from structura.core.config import StorageConfig
from structura.core.exceptions import StorageError
from structura.core.models import StorageBackend
from structura.prices.models import CoverageRow, PriceBar

logger = logging.getLogger(__name__)

_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS price_cache (
        symbol TEXT NOT NULL,
        date TEXT NOT NULL,
        open REAL,
        high REAL,
        low REAL,
        close REAL NOT NULL,
        volume INTEGER,
        fetched_at TEXT NOT NULL,
        PRIMARY KEY (symbol, date)
    )""",
    "CREATE INDEX IF NOT EXISTS idx_price_cache_date ON price_cache (date)",
]

_COLUMNS = "symbol, date, open, high, low, close, volume"


@runtime_checkable
class PriceStore(Protocol):
    """Protocol for price cache persistence backends."""

    async def upsert_bars(self, bars: list[PriceBar]) -> int: ...
    async def delete_symbols(self, symbols: list[str]) -> int: ...
    async def query_bars(
        self, symbols: list[str], start: date, limit: int
    ) -> list[PriceBar]: ...
    async def last_date(self, symbol: str) -> date | None: ...
    async def coverage(self) -> list[CoverageRow]: ...
    async def count_rows(self, symbol: str | None = None) -> int: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...


class SqlitePriceStore:
    """SQLite implementation of PriceStore.

    Holds one aiosqlite connection for its lifetime; WAL mode lets a
    seeding run and cache reads proceed side by side.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            await self._db.execute("PRAGMA journal_mode=WAL")
            for stmt in _SCHEMA:
                await self._db.execute(stmt)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite price store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Price store is not initialized",
                context={"operation": "connect", "table": "price_cache"},
            )
        return self._db

    async def upsert_bars(self, bars: list[PriceBar]) -> int:
        """Insert bars, replacing any existing row with the same (symbol, date)."""
        if not bars:
            return 0

        fetched_at = datetime.now(timezone.utc).isoformat()
        rows = [
            (
                bar.symbol,
                bar.date.isoformat(),
                bar.open,
                bar.high,
                bar.low,
                bar.close,
                bar.volume,
                fetched_at,
            )
            for bar in bars
        ]
        try:
            await self.db.executemany(
                """INSERT INTO price_cache
                   (symbol, date, open, high, low, close, volume, fetched_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (symbol, date) DO UPDATE SET
                       open = excluded.open,
                       high = excluded.high,
                       low = excluded.low,
                       close = excluded.close,
                       volume = excluded.volume,
                       fetched_at = excluded.fetched_at""",
                rows,
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to upsert price bars: {e}",
                context={"operation": "upsert", "table": "price_cache"},
            ) from e

        logger.debug("Upserted %d price bars", len(rows))
        return len(rows)

    async def delete_symbols(self, symbols: list[str]) -> int:
        """Delete every cached row for the given symbols."""
        if not symbols:
            return 0

        placeholders = ", ".join("?" for _ in symbols)
        try:
            cursor = await self.db.execute(
                f"DELETE FROM price_cache WHERE symbol IN ({placeholders})",
                list(symbols),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to delete cached prices: {e}",
                context={"operation": "delete", "table": "price_cache"},
            ) from e

        logger.info("Deleted %d cached rows for %d symbols", cursor.rowcount, len(symbols))
        return cursor.rowcount

    async def query_bars(
        self, symbols: list[str], start: date, limit: int
    ) -> list[PriceBar]:
        """Return bars for ``symbols`` on or after ``start``, oldest first.

        ``limit`` is mandatory: callers choose the cap explicitly.
        """
        if not symbols:
            return []

        placeholders = ", ".join("?" for _ in symbols)
        try:
            cursor = await self.db.execute(
                f"""SELECT {_COLUMNS} FROM price_cache
                    WHERE symbol IN ({placeholders}) AND date >= ?
                    ORDER BY date ASC, symbol ASC
                    LIMIT ?""",
                [*symbols, start.isoformat(), limit],
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to query cached prices: {e}",
                context={"operation": "query", "table": "price_cache"},
            ) from e

        return [
            PriceBar(
                symbol=row[0],
                date=date.fromisoformat(row[1]),
                open=row[2],
                high=row[3],
                low=row[4],
                close=row[5],
                volume=row[6],
            )
            for row in rows
        ]

    async def last_date(self, symbol: str) -> date | None:
        """Most recent cached date for ``symbol``, if any."""
        cursor = await self.db.execute(
            "SELECT MAX(date) FROM price_cache WHERE symbol = ?", (symbol,)
        )
        row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return date.fromisoformat(row[0])

    async def coverage(self) -> list[CoverageRow]:
        """Row count and date span per cached symbol."""
        cursor = await self.db.execute(
            """SELECT symbol, COUNT(*), MIN(date), MAX(date)
               FROM price_cache GROUP BY symbol ORDER BY symbol"""
        )
        rows = await cursor.fetchall()
        return [
            CoverageRow(
                symbol=row[0],
                rows=row[1],
                first_date=date.fromisoformat(row[2]),
                last_date=date.fromisoformat(row[3]),
            )
            for row in rows
        ]

    async def count_rows(self, symbol: str | None = None) -> int:
        if symbol is None:
            cursor = await self.db.execute("SELECT COUNT(*) FROM price_cache")
        else:
            cursor = await self.db.execute(
                "SELECT COUNT(*) FROM price_cache WHERE symbol = ?", (symbol,)
            )
        row = await cursor.fetchone()
        return row[0] if row else 0


async def create_store(config: StorageConfig) -> SqlitePriceStore:
    """Create and initialize a price store based on configuration."""
    if config.backend == StorageBackend.SQLITE:
        store = SqlitePriceStore(config)
        await store.initialize()
        return store
    raise StorageError(
        f"Unsupported storage backend: {config.backend}",
        context={"operation": "create_store", "backend": str(config.backend)},
    )
