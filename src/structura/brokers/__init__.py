"""Broker authorization and holdings normalization.

Each broker implements ``BrokerClient``; the shared ``connect`` pipeline
turns a short-lived credential into a ``HoldingsSnapshot`` of canonical
``Holding`` records.
"""

from structura.brokers.base import BrokerClient
from structura.brokers.normalize import (
    normalize_kite_holding,
    normalize_upstox_holding,
    pnl_percent,
    qualify_symbol,
)
from structura.brokers.upstox import UpstoxClient
from structura.brokers.zerodha import ZerodhaClient, kite_checksum

__all__ = [
    "BrokerClient",
    "UpstoxClient",
    "ZerodhaClient",
    "kite_checksum",
    "qualify_symbol",
    "pnl_percent",
    "normalize_upstox_holding",
    "normalize_kite_holding",
]
