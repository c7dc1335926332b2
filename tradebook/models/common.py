"""Shared field types for TradeBook models."""

from typing import Literal

Exchange = Literal["NSE", "BSE"]
Product = Literal["CNC", "MIS", "NRML"]

EXCHANGES: tuple[str, ...] = ("NSE", "BSE")
PRODUCTS: tuple[str, ...] = ("CNC", "MIS", "NRML")


def normalize_symbol(value: object) -> object:
    """Strip and upper-case a trading symbol."""
    if isinstance(value, str):
        return value.strip().upper()
    return value


def normalize_exchange(value: object) -> object:
    """Strip and upper-case an exchange code."""
    if isinstance(value, str):
        return value.strip().upper()
    return value
