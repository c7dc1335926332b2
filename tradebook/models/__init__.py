"""Data models for TradeBook."""

from tradebook.models.common import EXCHANGES, PRODUCTS, Exchange, Product
from tradebook.models.holding import Holding
from tradebook.models.order import (
    MODIFIABLE_STATUSES,
    TERMINAL_STATUSES,
    Order,
    OrderStatus,
    OrderType,
    TransactionType,
    Validity,
)
from tradebook.models.position import Position
from tradebook.models.watchlist import Watchlist, WatchlistItem

__all__ = [
    "EXCHANGES",
    "Exchange",
    "Holding",
    "MODIFIABLE_STATUSES",
    "Order",
    "OrderStatus",
    "OrderType",
    "PRODUCTS",
    "Position",
    "Product",
    "TERMINAL_STATUSES",
    "TransactionType",
    "Validity",
    "Watchlist",
    "WatchlistItem",
]
