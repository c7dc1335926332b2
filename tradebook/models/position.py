"""Position data model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tradebook.models.common import Exchange, Product, normalize_exchange, normalize_symbol


class Position(BaseModel):
    """Represents an intraday or carry-forward position.

    ``quantity`` is signed: positive for long, negative for short. The buy
    and sell aggregates are the source of truth for the net quantity.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    owner_id: str = Field(..., min_length=1, description="Owning user ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    exchange: Exchange = Field(default="NSE", description="Listing exchange")
    product: Product = Field(..., description="Product type (CNC/MIS/NRML)")
    quantity: int = Field(..., description="Position quantity (negative for short)")
    average_price: float = Field(..., ge=0, description="Average entry price")
    last_traded_price: float = Field(..., ge=0, description="Last traded price")
    buy_quantity: int = Field(default=0, ge=0, description="Total bought quantity")
    buy_value: float = Field(default=0.0, ge=0, description="Total bought value")
    sell_quantity: int = Field(default=0, ge=0, description="Total sold quantity")
    sell_value: float = Field(default=0.0, ge=0, description="Total sold value")
    multiplier: float = Field(default=1.0, ge=1, description="Contract multiplier")
    realized_pnl: float = Field(default=0.0, description="Realized profit/loss")
    day_change: float = Field(default=0.0, description="P&L at the last price refresh")
    day_change_percentage: float = Field(
        default=0.0, description="Price change vs average at the last refresh"
    )
    overnight: bool = Field(default=False, description="Carried over from a previous session")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    model_config = {"frozen": True}

    upper_symbol = field_validator("symbol", mode="before")(normalize_symbol)
    upper_exchange = field_validator("exchange", mode="before")(normalize_exchange)

    @property
    def net_quantity(self) -> int:
        return self.buy_quantity - self.sell_quantity

    @property
    def buy_average_price(self) -> float:
        return self.buy_value / self.buy_quantity if self.buy_quantity else 0.0

    @property
    def sell_average_price(self) -> float:
        return self.sell_value / self.sell_quantity if self.sell_quantity else 0.0

    @property
    def average_buy_sell_price(self) -> float:
        """Entry price of the open side: buy average when long, sell average when short."""
        if self.net_quantity == 0:
            return 0.0
        return self.buy_average_price if self.net_quantity > 0 else self.sell_average_price

    @property
    def is_loss(self) -> bool:
        return self.day_change < 0
