"""Simulated price source.

Prices are random walks around a per-symbol reference price. Pass a seed
for reproducible quotes.
"""

import math
import random
from datetime import datetime
from typing import Callable, Optional

from tradebook.errors import ValidationError
from tradebook.market.base import IndexQuote, PriceSource, Quote, StockInfo

INSTRUMENTS = [
    StockInfo(symbol="INFY", name="Infosys Ltd", price=1450.75),
    StockInfo(symbol="TCS", name="Tata Consultancy Services", price=3250.80),
    StockInfo(symbol="WIPRO", name="Wipro Ltd", price=450.25),
    StockInfo(symbol="HCLTECH", name="HCL Technologies", price=1150.90),
    StockInfo(symbol="TECHM", name="Tech Mahindra", price=1200.45),
    StockInfo(symbol="RELIANCE", name="Reliance Industries", price=2112.40),
    StockInfo(symbol="HDFCBANK", name="HDFC Bank", price=1522.35),
]

INDEX_BASES = {
    "NIFTY 50": (19250.75, 1.0),
    "SENSEX": (64382.50, 2.0),
    "NIFTY BANK": (43750.25, 1.5),
}

# Maximum random move of a quote against its reference price.
MAX_VARIATION = 0.02


class SimulatedPriceSource(PriceSource):
    """Price source that makes prices up."""

    def __init__(
        self,
        seed: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the simulated price source.

        Args:
            seed: Optional random seed for reproducible prices.
            clock: Time source used for index simulation.
        """
        self._random = random.Random(seed)
        self._clock = clock
        self._references = {info.symbol: info.price for info in INSTRUMENTS}

    def _reference_price(self, symbol: str) -> float:
        if symbol not in self._references:
            self._references[symbol] = round(self._random.uniform(100, 1100), 2)
        return self._references[symbol]

    def get_quote(self, symbol: str, exchange: str = "NSE") -> Quote:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValidationError("Invalid symbol", {"symbol": "Stock symbol is required"})

        reference = self._reference_price(symbol)
        ltp = round(reference * (1 + self._random.uniform(-MAX_VARIATION, MAX_VARIATION)), 2)
        prev_close = reference
        change = ltp - prev_close

        return Quote(
            symbol=symbol,
            exchange=exchange.strip().upper(),
            ltp=ltp,
            change=round(change, 2),
            change_percent=round(change / prev_close * 100, 2),
            volume=self._random.randint(10000, 1000000),
            high=round(max(ltp, prev_close) * (1 + self._random.uniform(0, 0.01)), 2),
            low=round(min(ltp, prev_close) * (1 - self._random.uniform(0, 0.01)), 2),
            close=prev_close,
        )

    def get_indices(self) -> list[IndexQuote]:
        now = self._clock()
        # Drifts smoothly with the minute of the hour.
        swing = math.sin(now.minute / 60 * math.pi) * 100

        return [
            IndexQuote(
                name=name,
                value=round(base + swing * factor, 2),
                change_percent=round(swing * factor / base * 100, 2),
                timestamp=now,
            )
            for name, (base, factor) in INDEX_BASES.items()
        ]

    def search(self, query: str) -> list[StockInfo]:
        query = query.strip().lower()
        if not query:
            raise ValidationError("Missing query", {"query": "Search query is required"})
        return [
            info
            for info in INSTRUMENTS
            if query in info.symbol.lower() or query in info.name.lower()
        ]
