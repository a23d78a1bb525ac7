"""Price data models for the seeding and cache-read paths."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel


class PriceBar(BaseModel):
    """A single OHLCV price bar, the canonical cached record.

    ``close`` holds the adjusted close whenever the upstream supplied one.
    The other price fields may be missing on thin trading days.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    date: date
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float
    volume: int | None = None

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v

    def to_row(self) -> dict:
        """Return the symbol-less shape served by the cache reader."""
        return {
            "date": self.date.isoformat(),
            "open": _as_float(self.open),
            "high": _as_float(self.high),
            "low": _as_float(self.low),
            "close": float(self.close),
            "volume": self.volume,
        }


def _as_float(value: float | None) -> float | None:
    return float(value) if value is not None else None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SeedCursor(_CamelModel):
    """Externally held position in the seeding universe.

    The cursor is never stored: callers resubmit ``next_batch`` as the
    following ``batch_start`` until it comes back as ``None``.
    """

    model_config = ConfigDict(frozen=True)

    batch_start: int = 0
    batch_size: int = 10
    total_symbols: int

    @model_validator(mode="after")
    def within_universe(self) -> SeedCursor:
        if self.batch_start < 0:
            raise ValueError(f"batch_start must be >= 0, got {self.batch_start}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.batch_start > self.total_symbols:
            raise ValueError(
                f"batch_start ({self.batch_start}) is past the end of the "
                f"universe ({self.total_symbols} symbols)"
            )
        return self

    @property
    def batch_end(self) -> int:
        return min(self.batch_start + self.batch_size, self.total_symbols)

    @property
    def next_batch(self) -> int | None:
        return self.batch_end if self.batch_end < self.total_symbols else None


class SymbolError(BaseModel):
    """A per-symbol failure reported alongside successful results."""

    symbol: str
    error: str


class SeedSummary(_CamelModel):
    """Batch summary returned by the historical seeder."""

    batch_start: int
    batch_end: int
    total_stocks: int
    processed: int
    failed: int
    total_days: int
    next_batch: int | None
    timestamp: datetime


class SeedResult(BaseModel):
    """Full seeder response: summary, days written per symbol, failures."""

    summary: SeedSummary
    results: dict[str, int]
    errors: list[SymbolError]


class CacheReadResult(_CamelModel):
    """Payload served by the price cache reader."""

    data: dict[str, list[dict]]
    errors: list[SymbolError]
    range: str
    start_date: date
    source: str = "db_cache"


class CoverageRow(_CamelModel):
    """How much history the cache holds for one symbol."""

    symbol: str
    rows: int
    first_date: date | None = None
    last_date: date | None = None


class OnDemandResult(_CamelModel):
    """Symbols fetched from upstream and cached outside the seeding cursor."""

    fetched: int
    failed: int
    data: dict[str, list[dict]]
    errors: list[SymbolError]
    range: str
    timestamp: datetime
