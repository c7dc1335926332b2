"""Valuation and aggregation for holdings and positions.

All functions are pure. Money arithmetic is carried out in Decimal so that
repeated price refreshes do not accumulate binary rounding drift; floats
are converted through their shortest string representation. Rounding to
two decimals happens only in format_money, at the presentation boundary.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal, Optional, Union

from pydantic import BaseModel, Field

from tradebook.errors import DivisionUndefined, UndefinedPercentage, ValidationError

Number = Union[int, float, str, Decimal]

HUNDRED = Decimal(100)
CENTS = Decimal("0.01")


class HoldingMetrics(BaseModel):
    """P&L of a single holding at its current price."""

    net: Decimal = Field(..., description="(price - avg) x qty")
    day_pct: Decimal = Field(..., description="(price - avg) / avg x 100")

    model_config = {"frozen": True}


class ValuationEntry(BaseModel):
    """One row fed into a portfolio roll-up."""

    avg: Decimal = Field(..., description="Average price")
    price: Decimal = Field(..., description="Current price")
    qty: Decimal = Field(..., description="Quantity")
    net: Decimal = Field(default=Decimal(0), description="Stored P&L of the row")

    model_config = {"frozen": True}


class PortfolioMetrics(BaseModel):
    """Portfolio level totals."""

    total_investment: Decimal
    current_value: Decimal
    todays_pnl: Decimal
    total_pnl: Decimal
    total_pnl_percentage: Optional[Decimal] = Field(
        default=None, description="None when nothing is invested"
    )

    model_config = {"frozen": True}

    def as_display(self, pnl_key: str = "todays_pnl") -> dict[str, Optional[str]]:
        """Render the metrics as two-decimal strings.

        Args:
            pnl_key: Name of the day P&L key (holdings use todays_pnl,
                positions use day_pnl).
        """
        return {
            "total_investment": format_money(self.total_investment),
            "current_value": format_money(self.current_value),
            pnl_key: format_money(self.todays_pnl),
            "total_pnl": format_money(self.total_pnl),
            "total_pnl_percentage": format_money(self.total_pnl_percentage),
        }


class PositionPnL(BaseModel):
    """Unrealized and total P&L of a position."""

    unrealized: Decimal
    total: Decimal

    model_config = {"frozen": True}


class FillResult(BaseModel):
    """Position aggregates after applying one fill."""

    buy_quantity: int
    buy_value: Decimal
    sell_quantity: int
    sell_value: Decimal
    average_price: Decimal
    realized_pnl: Decimal

    model_config = {"frozen": True}

    @property
    def net_quantity(self) -> int:
        return self.buy_quantity - self.sell_quantity


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without inheriting float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def percentage(part: Number, whole: Number) -> Decimal:
    """Return part / whole x 100.

    Raises:
        UndefinedPercentage: If whole is zero.
    """
    whole = to_decimal(whole)
    if whole == 0:
        raise UndefinedPercentage("Percentage is undefined for a zero base")
    return to_decimal(part) / whole * HUNDRED


def compute_holding_metrics(qty: Number, avg: Number, price: Number) -> HoldingMetrics:
    """Compute net P&L and the percentage move of price against average.

    Args:
        qty: Quantity held.
        avg: Average buy price. Must be non-zero.
        price: Current market price.

    Returns:
        HoldingMetrics with net and day_pct.

    Raises:
        DivisionUndefined: If avg is zero.
    """
    qty, avg, price = to_decimal(qty), to_decimal(avg), to_decimal(price)
    if avg == 0:
        raise DivisionUndefined(
            "Average price must be greater than 0",
            {"average_price": "must be greater than 0"},
        )
    diff = price - avg
    return HoldingMetrics(net=diff * qty, day_pct=diff / avg * HUNDRED)


def aggregate_portfolio(entries: Iterable[ValuationEntry]) -> PortfolioMetrics:
    """Roll a list of entries up into portfolio totals.

    The result does not depend on the order of the entries.

    Args:
        entries: Valuation entries (avg, price, qty, net).

    Returns:
        PortfolioMetrics. total_pnl_percentage is None when the total
        investment is zero.
    """
    total_investment = Decimal(0)
    current_value = Decimal(0)
    todays_pnl = Decimal(0)

    for entry in entries:
        total_investment += entry.avg * entry.qty
        current_value += entry.price * entry.qty
        todays_pnl += entry.net

    total_pnl = current_value - total_investment
    try:
        total_pnl_percentage: Optional[Decimal] = percentage(total_pnl, total_investment)
    except UndefinedPercentage:
        total_pnl_percentage = None

    return PortfolioMetrics(
        total_investment=total_investment,
        current_value=current_value,
        todays_pnl=todays_pnl,
        total_pnl=total_pnl,
        total_pnl_percentage=total_pnl_percentage,
    )


def compute_position_pnl(
    net_qty: Number,
    avg_price: Number,
    ltp: Number,
    multiplier: Number = 1,
    realized: Number = 0,
) -> PositionPnL:
    """Compute unrealized and total P&L of a position.

    The formula is sign-symmetric: a negative net quantity (short) gains
    when ltp falls below the average price.
    """
    unrealized = (
        to_decimal(net_qty)
        * (to_decimal(ltp) - to_decimal(avg_price))
        * to_decimal(multiplier)
    )
    return PositionPnL(unrealized=unrealized, total=to_decimal(realized) + unrealized)


def apply_fill(
    *,
    buy_quantity: int,
    buy_value: Number,
    sell_quantity: int,
    sell_value: Number,
    average_price: Number,
    realized_pnl: Number,
    multiplier: Number,
    side: Literal["BUY", "SELL"],
    quantity: int,
    price: Number,
) -> FillResult:
    """Apply one fill to a position's aggregates.

    A fill in the direction of the open exposure re-averages the entry
    price. A fill against it realizes P&L on the closed quantity; any
    excess flips the position and opens it at the fill price.
    """
    if quantity < 1:
        raise ValidationError("Invalid fill", {"quantity": "must be at least 1"})

    price = to_decimal(price)
    avg = to_decimal(average_price)
    realized = to_decimal(realized_pnl)
    multiplier = to_decimal(multiplier)
    prev_net = buy_quantity - sell_quantity
    signed_qty = quantity if side == "BUY" else -quantity

    if prev_net == 0 or (prev_net > 0) == (signed_qty > 0):
        open_qty = abs(prev_net)
        avg = (open_qty * avg + quantity * price) / (open_qty + quantity)
    else:
        closed = min(quantity, abs(prev_net))
        direction = 1 if prev_net > 0 else -1
        realized += closed * (price - avg) * multiplier * direction
        if quantity > closed:
            avg = price

    buy_value = to_decimal(buy_value)
    sell_value = to_decimal(sell_value)
    if side == "BUY":
        buy_quantity += quantity
        buy_value += quantity * price
    else:
        sell_quantity += quantity
        sell_value += quantity * price

    return FillResult(
        buy_quantity=buy_quantity,
        buy_value=buy_value,
        sell_quantity=sell_quantity,
        sell_value=sell_value,
        average_price=avg,
        realized_pnl=realized,
    )


def format_money(value: Optional[Number]) -> Optional[str]:
    """Format a monetary value with exactly two decimals (half-up)."""
    if value is None:
        return None
    return str(to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))
