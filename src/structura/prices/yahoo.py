"""Yahoo Finance chart client: direct HTTP implementation.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint via httpx with a
relative ``range`` window (``5y``, ``1mo``, ...) rather than explicit
period bounds, which is what the seeder needs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from structura.core.config import UpstreamConfig
from structura.core.exceptions import UpstreamError
from structura.prices.models import PriceBar

logger = logging.getLogger(__name__)

_CHART_PATH = "/v8/finance/chart"


class YahooChartAdapter:
    """Transforms a Yahoo Finance ``chart.result[0]`` object into PriceBars.

    The quote arrays and the optional ``adjclose`` array are index-aligned
    with ``timestamp``. The adjusted close wins over the raw close; rows
    left without any close are dropped.
    """

    def adapt(self, raw_data: Any, symbol: str) -> list[PriceBar]:
        timestamps: list[int] = raw_data.get("timestamp") or []
        if not timestamps:
            return []

        indicators = raw_data.get("indicators") or {}
        quotes = (indicators.get("quote") or [{}])[0] or {}
        adjclose_data = indicators.get("adjclose") or []
        adj_closes: list[float | None] = (
            (adjclose_data[0] or {}).get("adjclose") or [] if adjclose_data else []
        )

        opens = quotes.get("open") or []
        highs = quotes.get("high") or []
        lows = quotes.get("low") or []
        closes = quotes.get("close") or []
        volumes = quotes.get("volume") or []

        bars: dict = {}
        for i, ts in enumerate(timestamps):
            ac = _at(adj_closes, i)
            c = ac if ac is not None else _at(closes, i)
            if c is None:
                continue

            v = _at(volumes, i)
            bar_date = datetime.fromtimestamp(ts, tz=timezone.utc).date()
            bars[bar_date] = PriceBar(
                symbol=symbol,
                date=bar_date,
                open=_at(opens, i),
                high=_at(highs, i),
                low=_at(lows, i),
                close=float(c),
                volume=int(v) if v is not None else None,
            )

        return [bars[d] for d in sorted(bars)]


def _at(values: list, i: int):
    return values[i] if i < len(values) else None


class YahooChartClient:
    """Fetches raw chart payloads from Yahoo Finance.

    Parameters
    ----------
    config : UpstreamConfig
        Base URL, timeout, and User-Agent.
    client : httpx.AsyncClient | None
        Shared client; one is created (and owned) if not given.
    """

    def __init__(
        self,
        config: UpstreamConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or UpstreamConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout),
            headers={"User-Agent": self._config.user_agent},
            follow_redirects=True,
        )

    async def __aenter__(self) -> YahooChartClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_chart(
        self,
        symbol: str,
        range: str = "5y",
        interval: str = "1d",
    ) -> dict:
        """Fetch the ``chart.result[0]`` object for one symbol.

        Raises
        ------
        UpstreamError
            On transport failure, non-2xx status, a provider error object,
            or an empty result list.
        """
        url = f"{self._config.base_url}{_CHART_PATH}/{quote(symbol, safe='')}"
        params = {"range": range, "interval": interval}

        try:
            resp = await self._client.get(url, params=params)
        except httpx.RequestError as e:
            raise UpstreamError(
                f"Request to Yahoo Finance failed: {e}",
                context={"symbol": symbol, "url": url},
            ) from e

        if not resp.is_success:
            logger.error(
                "Yahoo Finance HTTP error for %s: %s %s",
                symbol,
                resp.status_code,
                resp.text[:200],
            )
            raise UpstreamError(
                f"HTTP {resp.status_code}",
                context={"symbol": symbol, "status_code": resp.status_code},
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(
                "Yahoo Finance returned a non-JSON body",
                context={"symbol": symbol, "status_code": resp.status_code},
            ) from e

        chart = data.get("chart") or {}
        if chart.get("error"):
            err = chart["error"]
            description = err.get("description") or err.get("code") or "Unknown error"
            raise UpstreamError(
                description,
                context={
                    "symbol": symbol,
                    "code": err.get("code"),
                    "description": err.get("description"),
                },
            )

        results = chart.get("result")
        if not results:
            raise UpstreamError("No data", context={"symbol": symbol})

        return results[0]
