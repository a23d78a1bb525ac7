"""Shared pytest fixtures for structura."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from structura.core.config import StorageConfig
from structura.core.models import StorageBackend
from structura.prices.models import PriceBar
from structura.prices.store import SqlitePriceStore


def market_open_ts(d: date) -> int:
    """Unix timestamp of the NSE open (09:15 IST) on ``d``."""
    return int(datetime(d.year, d.month, d.day, 3, 45, tzinfo=timezone.utc).timestamp())


def chart_result(
    days: list[date],
    closes: list[float | None],
    adjcloses: list[float | None] | None = None,
    volumes: list[int | None] | None = None,
) -> dict:
    """Build one ``chart.result[0]`` object with index-aligned arrays."""
    quote = {
        "open": [c if c is None else c - 1 for c in closes],
        "high": [c if c is None else c + 2 for c in closes],
        "low": [c if c is None else c - 2 for c in closes],
        "close": closes,
        "volume": volumes if volumes is not None else [1000] * len(closes),
    }
    indicators: dict = {"quote": [quote]}
    if adjcloses is not None:
        indicators["adjclose"] = [{"adjclose": adjcloses}]
    return {
        "meta": {"currency": "INR"},
        "timestamp": [market_open_ts(d) for d in days],
        "indicators": indicators,
    }


def chart_payload(result: dict | None) -> dict:
    """Wrap a result object in the full chart response envelope."""
    return {"chart": {"result": [result] if result is not None else [], "error": None}}


@pytest.fixture
def yahoo_base() -> str:
    return "https://query1.finance.yahoo.com"


@pytest.fixture
def make_chart():
    """Factory for a full Yahoo chart response.

    ``make_chart(days, closes, adjcloses=None, volumes=None)``; pass
    ``days=[]`` for an empty result list.
    """

    def _make(days, closes=None, adjcloses=None, volumes=None):
        if not days:
            return chart_payload(None)
        return chart_payload(chart_result(days, closes, adjcloses, volumes))

    return _make


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(backend=StorageBackend.SQLITE, sqlite_path=":memory:")


@pytest.fixture
async def store(storage_config: StorageConfig):
    """An initialized in-memory SqlitePriceStore."""
    s = SqlitePriceStore(storage_config)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def make_bar():
    """Factory for PriceBar with overridable defaults."""

    def _make(symbol: str = "RELIANCE.NS", day: date = date(2024, 1, 2), **overrides):
        defaults = dict(
            symbol=symbol,
            date=day,
            open=2580.0,
            high=2610.5,
            low=2571.2,
            close=2598.3,
            volume=4_512_000,
        )
        defaults.update(overrides)
        return PriceBar(**defaults)

    return _make
