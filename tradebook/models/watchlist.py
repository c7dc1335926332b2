"""Watchlist and WatchlistItem data models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tradebook.models.common import Exchange, normalize_exchange, normalize_symbol


class WatchlistItem(BaseModel):
    """A stock reference inside a watchlist, identified by (symbol, exchange)."""

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    exchange: Exchange = Field(default="NSE", description="Listing exchange")
    last_price: Optional[float] = Field(default=None, ge=0, description="Last known price")
    change_value: float = Field(default=0.0, description="Absolute change")
    change_percentage: float = Field(default=0.0, description="Percentage change")
    notes: Optional[str] = Field(default=None, description="User notes")

    model_config = {"frozen": True}

    upper_symbol = field_validator("symbol", mode="before")(normalize_symbol)
    upper_exchange = field_validator("exchange", mode="before")(normalize_exchange)

    @property
    def key(self) -> tuple[str, str]:
        return (self.symbol, self.exchange)


class Watchlist(BaseModel):
    """A named, ordered set of stock references owned by one user."""

    id: Optional[int] = Field(default=None, description="Database ID")
    owner_id: str = Field(..., min_length=1, description="Owning user ID")
    name: str = Field(..., min_length=1, max_length=50, description="Watchlist name")
    description: Optional[str] = Field(default=None, max_length=200, description="Description")
    items: list[WatchlistItem] = Field(default_factory=list, description="Ordered items")
    is_default: bool = Field(default=False, description="Default watchlist flag")
    sort_order: int = Field(default=0, description="Display order among watchlists")
    color: Optional[str] = Field(
        default=None, pattern=r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$", description="Hex color"
    )
    icon: Optional[str] = Field(default=None, description="Icon name")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    model_config = {"frozen": True}

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @property
    def items_count(self) -> int:
        return len(self.items)
