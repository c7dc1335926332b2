"""Price source interface for TradeBook."""

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel, Field

from tradebook.models.common import Exchange


class Quote(BaseModel):
    """Represents a quote for a symbol."""

    symbol: str = Field(..., description="Trading symbol")
    exchange: Exchange = Field(default="NSE", description="Listing exchange")
    ltp: float = Field(..., ge=0, description="Last traded price")
    change: float = Field(..., description="Price change from previous close")
    change_percent: float = Field(..., description="Percentage change")
    volume: int = Field(..., ge=0, description="Trading volume")
    high: float = Field(..., ge=0, description="Day high")
    low: float = Field(..., ge=0, description="Day low")
    close: float = Field(..., ge=0, description="Previous close")

    model_config = {"frozen": True}


class IndexQuote(BaseModel):
    """Represents a market index level."""

    name: str = Field(..., description="Index name")
    value: float = Field(..., description="Index level")
    change_percent: float = Field(..., description="Percentage change")
    timestamp: datetime = Field(..., description="Quote time")

    model_config = {"frozen": True}


class StockInfo(BaseModel):
    """Represents a searchable instrument."""

    symbol: str = Field(..., description="Trading symbol")
    name: str = Field(..., description="Company name")
    exchange: Exchange = Field(default="NSE", description="Listing exchange")
    price: float = Field(..., ge=0, description="Reference price")

    model_config = {"frozen": True}


class PriceSource(ABC):
    """Abstract base class for price sources.

    TradeBook never trades against a price source; it only reads prices to
    refresh holdings, positions and watchlists.
    """

    @abstractmethod
    def get_quote(self, symbol: str, exchange: str = "NSE") -> Quote:
        """Get a quote for a symbol.

        Args:
            symbol: Trading symbol.
            exchange: Listing exchange.

        Returns:
            Quote with current price data.
        """
        pass

    @abstractmethod
    def get_indices(self) -> list[IndexQuote]:
        """Get the current levels of the tracked market indices."""
        pass

    @abstractmethod
    def search(self, query: str) -> list[StockInfo]:
        """Search instruments by symbol or company name.

        Args:
            query: Case-insensitive search text.

        Returns:
            Matching instruments.
        """
        pass
