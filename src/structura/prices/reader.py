"""Cache-first price history reads.

The reader only ever talks to the price store. Symbols the cache cannot
serve are reported in ``errors``; backfilling them is the seeder's job.
"""

from __future__ import annotations

import logging
from datetime import date

from structura.core.models import PriceRange
from structura.prices.models import CacheReadResult, SymbolError
from structura.prices.store import PriceStore

logger = logging.getLogger(__name__)

NO_DATA_ERROR = "No data in cache"
DEFAULT_ROW_LIMIT = 100_000


def resolve_start_date(range: str | None, today: date | None = None) -> date:
    """Translate a relative range into an absolute start date.

    Unknown ranges fall back to one year. Feb 29 maps to Feb 28 in years
    without one.
    """
    today = today or date.today()
    year = today.year - PriceRange.parse(range).years
    try:
        return today.replace(year=year)
    except ValueError:
        return today.replace(year=year, day=28)


class PriceCacheReader:
    """Serves grouped OHLCV history straight from the price store.

    Parameters
    ----------
    store : PriceStore
        The cache to read.
    row_limit : int
        Explicit cap passed to every query.
    """

    def __init__(self, store: PriceStore, row_limit: int = DEFAULT_ROW_LIMIT) -> None:
        self._store = store
        self._row_limit = row_limit

    async def read(
        self,
        symbols: list[str],
        range: str = PriceRange.ONE_YEAR.value,
        today: date | None = None,
    ) -> CacheReadResult:
        """Return ``{data, errors, range, startDate, source}`` for ``symbols``.

        Every distinct requested symbol lands in exactly one of ``data`` or
        ``errors``.
        """
        requested = list(dict.fromkeys(symbols))
        start_date = resolve_start_date(range, today)

        logger.info(
            "Reading %d symbols, range %s, from %s", len(requested), range, start_date
        )
        bars = await self._store.query_bars(requested, start_date, self._row_limit)
        if len(bars) >= self._row_limit:
            logger.warning(
                "Cache read hit the row limit (%d); later dates were truncated",
                self._row_limit,
            )

        data: dict[str, list[dict]] = {}
        for bar in bars:
            data.setdefault(bar.symbol, []).append(bar.to_row())

        errors = [
            SymbolError(symbol=symbol, error=NO_DATA_ERROR)
            for symbol in requested
            if not data.get(symbol)
        ]

        logger.info(
            "Loaded %d/%d symbols, %d data points",
            len(data),
            len(requested),
            len(bars),
        )
        return CacheReadResult(
            data=data,
            errors=errors,
            range=range,
            start_date=start_date,
        )
