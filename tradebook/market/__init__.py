"""Price sources for TradeBook."""

from tradebook.market.base import IndexQuote, PriceSource, Quote, StockInfo
from tradebook.market.simulated import SimulatedPriceSource

__all__ = [
    "IndexQuote",
    "PriceSource",
    "Quote",
    "SimulatedPriceSource",
    "StockInfo",
]
