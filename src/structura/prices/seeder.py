"""Chunked historical seeding of the price cache.

Each call processes one slice of the configured universe and returns a
cursor (``nextBatch``) for the caller to resubmit. Nothing about the run is
held in memory between calls; the only durable progress is the rows
already upserted, which makes any batch safe to retry.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date, datetime, timezone

from pydantic import ValidationError

from structura.core.config import SeederConfig
from structura.core.exceptions import SeedError, UpstreamError
from structura.core.models import PriceRange
from structura.prices.models import (
    OnDemandResult,
    PriceBar,
    SeedCursor,
    SeedResult,
    SeedSummary,
    SymbolError,
)
from structura.prices.store import PriceStore
from structura.prices.yahoo import YahooChartAdapter, YahooChartClient

logger = logging.getLogger(__name__)

# Smallest Yahoo range that covers a gap of at most N days.
_INCREMENTAL_RANGES: list[tuple[int, str]] = [
    (5, "5d"),
    (30, "1mo"),
    (90, "3mo"),
    (365, "1y"),
]


def incremental_range(days_since: int, full_range: str) -> str:
    """Pick the Yahoo range needed to close a gap of ``days_since`` days."""
    for max_days, yahoo_range in _INCREMENTAL_RANGES:
        if days_since <= max_days:
            return yahoo_range
    return full_range


class HistoricalSeeder:
    """Populates the price cache from Yahoo Finance, one batch per call.

    Parameters
    ----------
    store : PriceStore
        Destination cache.
    client : YahooChartClient
        Upstream chart client.
    config : SeederConfig
        Universe, history window, and inter-request delay.
    adapter : YahooChartAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        store: PriceStore,
        client: YahooChartClient,
        config: SeederConfig,
        adapter: YahooChartAdapter | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._config = config
        self._adapter = adapter or YahooChartAdapter()

    @property
    def universe(self) -> Sequence[str]:
        return self._config.universe

    async def seed_batch(
        self,
        batch_start: int = 0,
        batch_size: int | None = None,
        clear_first: bool = False,
        incremental: bool = False,
        today: date | None = None,
    ) -> SeedResult:
        """Seed symbols ``[batch_start, min(batch_start + batch_size, N))``.

        Per-symbol failures are collected in ``errors`` and never abort the
        batch. Returns the summary with ``next_batch`` set while symbols
        remain.

        Raises
        ------
        SeedError
            If the cursor is outside the universe, or ``clear_first`` and
            ``incremental`` are both requested.
        """
        if clear_first and incremental:
            raise SeedError(
                "clearFirst and incremental cannot be combined",
                context={"batch_start": batch_start},
            )

        try:
            cursor = SeedCursor(
                batch_start=batch_start,
                batch_size=(
                    batch_size if batch_size is not None else self._config.default_batch_size
                ),
                total_symbols=len(self.universe),
            )
        except ValidationError as e:
            raise SeedError(
                e.errors()[0]["msg"].removeprefix("Value error, "),
                context={"batch_start": batch_start, "total_symbols": len(self.universe)},
            ) from e

        now = datetime.now(timezone.utc)
        today = today or now.date()
        batch = list(self.universe[cursor.batch_start : cursor.batch_end])

        logger.info(
            "Processing batch %d-%d of %d symbols",
            cursor.batch_start,
            cursor.batch_end,
            cursor.total_symbols,
        )

        if clear_first and batch:
            await self._store.delete_symbols(batch)

        results: dict[str, int] = {}
        errors: list[SymbolError] = []
        called_upstream = False

        for symbol in batch:
            try:
                last = await self._store.last_date(symbol) if incremental else None
                yahoo_range = self._config.history_range
                if last is not None:
                    days_since = (today - last).days
                    if days_since <= 1:
                        logger.info("%s: already up to date (%s)", symbol, last)
                        results[symbol] = 0
                        continue
                    yahoo_range = incremental_range(days_since, self._config.history_range)

                if called_upstream:
                    await asyncio.sleep(self._config.request_delay)
                called_upstream = True

                bars = await self._fetch_bars(symbol, yahoo_range)
                if last is not None:
                    bars = [b for b in bars if b.date > last]
                    if not bars:
                        results[symbol] = 0
                        continue

                written = await self._store.upsert_bars(bars)
                results[symbol] = written
                logger.info("%s: %d days cached", symbol, written)
            except Exception as e:
                logger.warning("%s: %s", symbol, e)
                errors.append(SymbolError(symbol=symbol, error=str(e)))

        summary = SeedSummary(
            batch_start=cursor.batch_start,
            batch_end=cursor.batch_end,
            total_stocks=cursor.total_symbols,
            processed=len(results),
            failed=len(errors),
            total_days=sum(results.values()),
            next_batch=cursor.next_batch,
            timestamp=now,
        )
        logger.info(
            "Batch complete: %d processed, %d failed, %d days, next=%s",
            summary.processed,
            summary.failed,
            summary.total_days,
            summary.next_batch,
        )
        return SeedResult(summary=summary, results=results, errors=errors)

    async def fetch_symbols(
        self,
        symbols: Sequence[str],
        range: str = PriceRange.ONE_YEAR.value,
    ) -> OnDemandResult:
        """Fetch and cache arbitrary symbols outside the batch cursor.

        Meant for symbols a cache read reported missing, including ones
        outside the configured universe. Each symbol's rows are upserted
        and returned; failures are collected per symbol as in
        :meth:`seed_batch`.

        Raises
        ------
        SeedError
            If no symbols are given.
        """
        requested = list(dict.fromkeys(s.strip() for s in symbols if s.strip()))
        if not requested:
            raise SeedError("symbols array required", context={"total_symbols": 0})

        yahoo_range = PriceRange.parse(range).yahoo_range
        logger.info("On-demand fetch: %d symbols, range %s", len(requested), range)

        data: dict[str, list[dict]] = {}
        errors: list[SymbolError] = []

        for i, symbol in enumerate(requested):
            if i:
                await asyncio.sleep(self._config.request_delay)
            try:
                bars = await self._fetch_bars(symbol, yahoo_range)
                await self._store.upsert_bars(bars)
                data[symbol] = [bar.to_row() for bar in bars]
                logger.info("%s: %d days fetched and cached", symbol, len(bars))
            except Exception as e:
                logger.warning("%s: %s", symbol, e)
                errors.append(SymbolError(symbol=symbol, error=str(e)))

        return OnDemandResult(
            fetched=len(data),
            failed=len(errors),
            data=data,
            errors=errors,
            range=range,
            timestamp=datetime.now(timezone.utc),
        )

    async def _fetch_bars(self, symbol: str, yahoo_range: str) -> list[PriceBar]:
        """Fetch and adapt one symbol's window, rejecting unusable payloads."""
        raw = await self._client.fetch_chart(
            symbol, range=yahoo_range, interval=self._config.interval
        )
        if not raw.get("timestamp"):
            raise UpstreamError("No data", context={"symbol": symbol})

        bars = self._adapter.adapt(raw, symbol)
        if not bars:
            raise UpstreamError("No valid data", context={"symbol": symbol})
        return bars
