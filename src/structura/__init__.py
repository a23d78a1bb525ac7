"""Structura: cached market data and broker holdings for Indian equities."""

__version__ = "0.1.0"
