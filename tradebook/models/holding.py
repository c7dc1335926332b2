"""Holding data model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from tradebook.models.common import Exchange, normalize_exchange, normalize_symbol


class Holding(BaseModel):
    """Represents a delivery holding accumulated in one symbol."""

    id: Optional[int] = Field(default=None, description="Database ID")
    owner_id: str = Field(..., min_length=1, description="Owning user ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    exchange: Exchange = Field(default="NSE", description="Listing exchange")
    quantity: int = Field(..., ge=0, description="Quantity held")
    average_price: float = Field(..., ge=0, description="Average buy price")
    current_price: float = Field(..., ge=0, description="Current market price")
    day_change: float = Field(default=0.0, description="P&L at the last price refresh")
    day_change_percentage: float = Field(
        default=0.0, description="Price change vs average at the last refresh"
    )
    pledged_quantity: int = Field(default=0, ge=0, description="Quantity pledged")
    collateral_quantity: int = Field(default=0, ge=0, description="Quantity held as collateral")
    t1_quantity: int = Field(default=0, ge=0, description="Quantity awaiting T+1 settlement")
    isin: Optional[str] = Field(
        default=None, pattern=r"^[A-Z]{2}[A-Z0-9]{10}\d$", description="ISIN code"
    )
    company_name: Optional[str] = Field(default=None, description="Company name")
    sector: Optional[str] = Field(default=None, description="Sector")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    model_config = {"frozen": True}

    upper_symbol = field_validator("symbol", mode="before")(normalize_symbol)
    upper_exchange = field_validator("exchange", mode="before")(normalize_exchange)

    @property
    def invested_amount(self) -> float:
        return self.quantity * self.average_price

    @property
    def current_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def profit_loss(self) -> float:
        return self.current_value - self.invested_amount

    @property
    def profit_loss_percentage(self) -> Optional[float]:
        """P&L as a percentage of the invested amount, None when nothing is invested."""
        if self.invested_amount == 0:
            return None
        return self.profit_loss / self.invested_amount * 100

    @property
    def available_quantity(self) -> int:
        return self.quantity - self.pledged_quantity - self.collateral_quantity

    @property
    def total_value(self) -> float:
        return self.current_value + self.t1_quantity * self.current_price

    def can_sell(self, quantity: int) -> bool:
        return self.available_quantity >= quantity
