"""Holdings normalization: broker-native records to the canonical Holding.

Pure functions, no I/O.
"""

from __future__ import annotations

from typing import Any

from structura.core.exceptions import NormalizationError
from structura.core.models import Holding

DEFAULT_SUFFIX = ".NS"

# Yahoo Finance suffixes for Indian exchanges.
EXCHANGE_SUFFIXES: dict[str, str] = {
    "NSE": ".NS",
    "BSE": ".BO",
}


def qualify_symbol(
    native: str, exchange: str | None = None, default_suffix: str = DEFAULT_SUFFIX
) -> str:
    """Append the exchange suffix unless ``native`` is already qualified."""
    if "." in native:
        return native
    suffix = EXCHANGE_SUFFIXES.get((exchange or "").upper(), default_suffix)
    return f"{native}{suffix}"


def pnl_percent(avg_price: float, current_price: float) -> float:
    """Percent gain over the average buy price; 0 when there is no cost basis."""
    if avg_price > 0:
        return (current_price - avg_price) / avg_price * 100
    return 0.0


def _require(raw: dict[str, Any], key: str, broker: str) -> Any:
    value = raw.get(key)
    if value is None:
        raise NormalizationError(
            f"{broker} holding is missing {key!r}",
            context={"broker": broker, "field": key},
        )
    return value


def normalize_upstox_holding(
    raw: dict[str, Any], default_suffix: str = DEFAULT_SUFFIX
) -> Holding:
    """Map an Upstox long-term holding into a Holding."""
    trading_symbol = str(_require(raw, "trading_symbol", "upstox"))
    quantity = float(_require(raw, "quantity", "upstox"))
    avg_price = float(_require(raw, "average_price", "upstox"))
    current_price = float(_require(raw, "close_price", "upstox"))
    exchange = raw.get("exchange")

    current_value = raw.get("current_value")
    if current_value is None:
        current_value = quantity * current_price

    return Holding(
        symbol=qualify_symbol(trading_symbol, exchange, default_suffix),
        trading_symbol=trading_symbol,
        name=raw.get("company_name") or trading_symbol,
        quantity=quantity,
        avg_buy_price=avg_price,
        current_price=current_price,
        current_value=float(current_value),
        pnl=raw.get("pnl"),
        pnl_percent=pnl_percent(avg_price, current_price),
        isin=raw.get("isin"),
        exchange=exchange,
        invested_value=quantity * avg_price,
        day_change=raw.get("day_change"),
        day_change_percent=raw.get("day_change_percentage"),
    )


def normalize_kite_holding(
    raw: dict[str, Any], default_suffix: str = DEFAULT_SUFFIX
) -> Holding:
    """Map a Zerodha Kite holding into a Holding.

    Kite sends no company name, so the trading symbol doubles as the name.
    """
    trading_symbol = str(_require(raw, "tradingsymbol", "zerodha"))
    quantity = float(_require(raw, "quantity", "zerodha"))
    avg_price = float(_require(raw, "average_price", "zerodha"))
    current_price = float(_require(raw, "last_price", "zerodha"))
    exchange = raw.get("exchange") or "NSE"

    current_value = raw.get("current_value")
    if current_value is None:
        current_value = quantity * current_price

    return Holding(
        symbol=qualify_symbol(trading_symbol, exchange, default_suffix),
        trading_symbol=trading_symbol,
        name=trading_symbol,
        quantity=quantity,
        avg_buy_price=avg_price,
        current_price=current_price,
        current_value=float(current_value),
        pnl=raw.get("pnl"),
        pnl_percent=pnl_percent(avg_price, current_price),
        isin=raw.get("isin"),
        exchange=exchange,
        invested_value=quantity * avg_price,
        day_change=raw.get("day_change"),
        day_change_percent=raw.get("day_change_percentage"),
    )
