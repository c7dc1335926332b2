"""Domain core: valuation, order lifecycle and watchlist set operations."""

from tradebook.core.orders import (
    cancel_order,
    create_order,
    execute_order,
    modify_order,
    reject_order,
    transition,
)
from tradebook.core.valuation import (
    PortfolioMetrics,
    PositionPnL,
    ValuationEntry,
    aggregate_portfolio,
    apply_fill,
    compute_holding_metrics,
    compute_position_pnl,
    format_money,
)
from tradebook.core.watchlist import add_stock, remove_stock, reorder, update_prices

__all__ = [
    "PortfolioMetrics",
    "PositionPnL",
    "ValuationEntry",
    "add_stock",
    "aggregate_portfolio",
    "apply_fill",
    "cancel_order",
    "compute_holding_metrics",
    "compute_position_pnl",
    "create_order",
    "execute_order",
    "format_money",
    "modify_order",
    "reject_order",
    "remove_stock",
    "reorder",
    "transition",
    "update_prices",
]
