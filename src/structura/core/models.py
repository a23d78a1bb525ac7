"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

# --- Type Aliases ---

Symbol = str
AccessToken = str

# --- Enumerations ---


class PriceRange(StrEnum):
    """Relative look-back windows served from the price cache."""

    ONE_YEAR = "1y"
    TWO_YEARS = "2y"
    THREE_YEARS = "3y"
    FIVE_YEARS = "5y"

    @property
    def years(self) -> int:
        return int(self.value[:-1])

    @property
    def yahoo_range(self) -> str:
        # Yahoo has no 3y window
        return "5y" if self is PriceRange.THREE_YEARS else self.value

    @classmethod
    def parse(cls, value: str | None) -> PriceRange:
        """Resolve a range string, falling back to one year when unknown."""
        try:
            return cls(value)
        except ValueError:
            return cls.ONE_YEAR


class BrokerName(StrEnum):
    """Brokers with a supported authorization flow."""

    UPSTOX = "upstox"
    ZERODHA = "zerodha"


class StorageBackend(StrEnum):
    """Supported storage backends."""

    SQLITE = "sqlite"


# --- Broker Models ---


class BrokerSession(BaseModel):
    """Outcome of a successful token exchange.

    Lives only for the duration of the request that produced it.
    """

    model_config = ConfigDict(frozen=True)

    broker: BrokerName
    access_token: AccessToken
    user_id: str | None = None
    user_name: str | None = None
    email: str | None = None
    expires_in: int | None = None

    def __repr__(self) -> str:
        return f"BrokerSession(broker={self.broker.value!r}, user_id={self.user_id!r})"

    __str__ = __repr__


class Holding(BaseModel):
    """One position in the broker-agnostic canonical shape.

    Serialized with camelCase keys, which is the contract the portfolio
    client reads.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    symbol: Symbol
    trading_symbol: str
    name: str
    quantity: float
    avg_buy_price: float
    current_price: float
    current_value: float
    pnl: float | None = None
    pnl_percent: float = 0.0
    isin: str | None = None
    exchange: str | None = None
    invested_value: float | None = None
    day_change: float | None = None
    day_change_percent: float | None = None

    @field_validator("symbol")
    @classmethod
    def symbol_is_qualified(cls, v: str) -> str:
        if "." not in v:
            raise ValueError(f"symbol must carry an exchange suffix, got: {v!r}")
        return v


class HoldingsSnapshot(BaseModel):
    """Normalized holdings returned by a broker connect flow."""

    model_config = ConfigDict(frozen=True)

    broker: BrokerName
    holdings: list[Holding]
    user: str | None = None

    @property
    def count(self) -> int:
        return len(self.holdings)
