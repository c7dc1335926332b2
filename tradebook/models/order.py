"""Order data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from tradebook.models.common import Exchange, Product, normalize_exchange, normalize_symbol

TransactionType = Literal["BUY", "SELL"]
OrderType = Literal["MARKET", "LIMIT", "SL", "SL-M"]
Validity = Literal["DAY", "IOC"]
OrderStatus = Literal["PENDING", "OPEN", "EXECUTED", "CANCELLED", "REJECTED"]

MODIFIABLE_STATUSES = frozenset({"PENDING", "OPEN"})
TERMINAL_STATUSES = frozenset({"EXECUTED", "CANCELLED", "REJECTED"})


class Order(BaseModel):
    """Represents an order request and its bookkeeping status.

    Orders are never matched; status changes are manual.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    owner_id: str = Field(..., min_length=1, description="Owning user ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    exchange: Exchange = Field(default="NSE", description="Listing exchange")
    transaction_type: TransactionType = Field(..., description="Order side")
    order_type: OrderType = Field(default="MARKET", description="Order type")
    product: Product = Field(default="CNC", description="Product type")
    quantity: int = Field(..., ge=1, description="Order quantity")
    price: Optional[float] = Field(default=None, ge=0, description="Limit price")
    trigger_price: Optional[float] = Field(default=None, ge=0, description="Stop-loss trigger price")
    validity: Validity = Field(default="DAY", description="Order validity")
    status: OrderStatus = Field(default="PENDING", description="Order status")
    average_price: float = Field(default=0.0, ge=0, description="Average fill price")
    filled_quantity: int = Field(default=0, ge=0, description="Filled quantity")
    remaining_quantity: int = Field(default=0, ge=0, description="Unfilled quantity")
    order_value: float = Field(default=0.0, ge=0, description="price x quantity")
    rejection_reason: Optional[str] = Field(default=None, description="Why the order was rejected")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    notes: Optional[str] = Field(default=None, description="User notes")
    parent_order_id: Optional[int] = Field(default=None, description="Parent order ID")
    created_at: datetime = Field(default_factory=datetime.now, description="Placement timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last modification timestamp")

    model_config = {"frozen": True}

    upper_symbol = field_validator("symbol", mode="before")(normalize_symbol)
    upper_exchange = field_validator("exchange", mode="before")(normalize_exchange)

    @property
    def is_modifiable(self) -> bool:
        return self.status in MODIFIABLE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def order_age(self, now: Optional[datetime] = None) -> int:
        """Seconds elapsed since the order was placed."""
        now = now or datetime.now()
        return round((now - self.created_at).total_seconds())
