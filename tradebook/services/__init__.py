"""Repository-backed services used by the CLI."""

from tradebook.services.holdings import HoldingService
from tradebook.services.orders import OrderService
from tradebook.services.positions import PositionService
from tradebook.services.watchlists import WatchlistManager

__all__ = [
    "HoldingService",
    "OrderService",
    "PositionService",
    "WatchlistManager",
]
