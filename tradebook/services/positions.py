"""Position bookkeeping: CRUD, fills, square-off and price refresh."""

import logging
from typing import Any, Optional

from tradebook.core.valuation import (
    ValuationEntry,
    aggregate_portfolio,
    apply_fill,
    compute_holding_metrics,
    compute_position_pnl,
    format_money,
)
from tradebook.errors import ConflictError, NotFoundError, ValidationError
from tradebook.models import PRODUCTS, Position
from tradebook.services.base import (
    Service,
    build,
    merge_results,
    parse_price_updates,
    require_positive,
    serialize,
)

logger = logging.getLogger(__name__)


def position_to_dict(position: Position) -> dict:
    """Serialize a position with its derived P&L values."""
    pnl = compute_position_pnl(
        position.quantity,
        position.average_price,
        position.last_traded_price,
        position.multiplier,
        position.realized_pnl,
    )
    return serialize(
        position,
        net_quantity=position.net_quantity,
        average_buy_sell_price=format_money(position.average_buy_sell_price),
        unrealized_pnl=format_money(pnl.unrealized),
        total_pnl=format_money(pnl.total),
        is_loss=position.is_loss,
    )


def _valuation(
    quantity: int, average_price: float, ltp: float, multiplier: float
) -> dict[str, Any]:
    """Day change fields of a position at the given price."""
    if quantity == 0 or average_price <= 0:
        return {"last_traded_price": ltp, "day_change": 0.0, "day_change_percentage": 0.0}
    pnl = compute_position_pnl(quantity, average_price, ltp, multiplier)
    metrics = compute_holding_metrics(quantity, average_price, ltp)
    return {
        "last_traded_price": ltp,
        "day_change": float(pnl.unrealized),
        "day_change_percentage": float(metrics.day_pct),
    }


def _opening_aggregates(quantity: int, average_price: float) -> dict[str, Any]:
    """Buy/sell aggregates of a position opened in one fill."""
    value = abs(quantity) * average_price
    if quantity >= 0:
        return {"buy_quantity": quantity, "buy_value": value, "sell_quantity": 0, "sell_value": 0.0}
    return {"buy_quantity": 0, "buy_value": 0.0, "sell_quantity": -quantity, "sell_value": value}


def _check_product(product: Optional[str]) -> Optional[str]:
    if product is None:
        return None
    product = product.strip().upper()
    if product not in PRODUCTS:
        raise ValidationError(
            "Invalid product",
            {"product": f"must be one of {', '.join(PRODUCTS)}"},
        )
    return product


class PositionService(Service):
    """Manages the open positions of an owner."""

    def list_positions(self, owner_id: str, product: Optional[str] = None) -> dict:
        """List positions, optionally for one product, with metrics.

        Investment and value are computed over absolute quantities so that
        short positions count as exposure.

        Returns:
            Dictionary containing:
            - positions: Serialized positions sorted by symbol
            - metrics: total_investment, current_value, day_pnl, total_pnl
              and total_pnl_percentage as two-decimal strings
        """
        product = _check_product(product)
        filters = {"product": product} if product else None
        positions = self.repository.find_many(owner_id, filters, sort=["symbol", "product"])
        metrics = aggregate_portfolio(
            ValuationEntry(
                avg=p.average_price,
                price=p.last_traded_price,
                qty=abs(p.quantity),
                net=p.day_change,
            )
            for p in positions
        )
        return {
            "positions": [position_to_dict(p) for p in positions],
            "metrics": metrics.as_display("day_pnl"),
        }

    def get_position(self, owner_id: str, position_id: int) -> dict:
        return position_to_dict(self.repository.get(owner_id, position_id))

    def add_position(
        self,
        owner_id: str,
        symbol: str,
        product: str,
        quantity: int,
        average_price: float,
        last_traded_price: float,
        exchange: str = "NSE",
        multiplier: float = 1.0,
        overnight: bool = False,
    ) -> dict:
        """Open a position.

        Args:
            owner_id: Owning user ID.
            symbol: Trading symbol.
            product: CNC, MIS or NRML.
            quantity: Signed quantity, negative for short. Must be non-zero.
            average_price: Entry price, greater than 0.
            last_traded_price: Current price, greater than 0.
            exchange: Listing exchange.
            multiplier: Contract multiplier.
            overnight: Whether the position is carried over.

        Raises:
            ValidationError: If a field is missing or out of range.
            ConflictError: If the owner already has (symbol, product).
        """
        errors: dict[str, str] = {}
        if not isinstance(quantity, int) or quantity == 0:
            errors["quantity"] = "must be a non-zero integer"
        require_positive(errors, "average_price", average_price)
        require_positive(errors, "last_traded_price", last_traded_price)
        if errors:
            raise ValidationError("Invalid position", errors)
        product = _check_product(product)

        now = self.now()
        position = build(
            Position,
            {
                "owner_id": owner_id,
                "symbol": symbol,
                "exchange": exchange,
                "product": product,
                "quantity": quantity,
                "average_price": average_price,
                "multiplier": multiplier,
                "overnight": overnight,
                **_opening_aggregates(quantity, average_price),
                **_valuation(quantity, average_price, last_traded_price, multiplier),
                "created_at": now,
                "updated_at": now,
            },
            "Invalid position",
        )

        existing = self.repository.find_one(
            owner_id, {"symbol": position.symbol, "product": position.product}
        )
        if existing is not None:
            raise ConflictError("Position already exists for this symbol and product")

        position = self.repository.save(position)
        logger.info(
            "Opened %s position %s x%d for %s (id=%s)",
            position.product, position.symbol, position.quantity, owner_id, position.id,
        )
        return position_to_dict(position)

    def update_position(
        self,
        owner_id: str,
        position_id: int,
        quantity: Optional[int] = None,
        average_price: Optional[float] = None,
        last_traded_price: Optional[float] = None,
    ) -> dict:
        """Overwrite quantity and prices of a position.

        Changing quantity or average price resets the buy/sell aggregates to
        a single opening fill; realized P&L is kept.
        """
        errors: dict[str, str] = {}
        if quantity is not None and (not isinstance(quantity, int) or quantity == 0):
            errors["quantity"] = "must be a non-zero integer"
        if average_price is not None:
            require_positive(errors, "average_price", average_price)
        if last_traded_price is not None:
            require_positive(errors, "last_traded_price", last_traded_price)
        if quantity is None and average_price is None and last_traded_price is None:
            errors["__root__"] = "nothing to update"
        if errors:
            raise ValidationError("Invalid position update", errors)

        position = self.repository.get(owner_id, position_id)
        patch: dict[str, Any] = {"updated_at": self.now()}
        if quantity is not None or average_price is not None:
            quantity = position.quantity if quantity is None else quantity
            average_price = position.average_price if average_price is None else average_price
            patch.update(
                quantity=quantity,
                average_price=average_price,
                **_opening_aggregates(quantity, average_price),
            )
        else:
            quantity, average_price = position.quantity, position.average_price

        ltp = position.last_traded_price if last_traded_price is None else last_traded_price
        patch.update(_valuation(quantity, average_price, ltp, position.multiplier))

        position = self.repository.save(self.repository.apply_patch(position, patch))
        logger.debug("Updated position %s (id=%s)", position.symbol, position.id)
        return position_to_dict(position)

    def delete_position(self, owner_id: str, position_id: int) -> dict:
        position = self.repository.get(owner_id, position_id)
        if not self.repository.delete_one(owner_id, position_id):
            raise NotFoundError("Position", position_id)
        logger.info("Deleted position %s (id=%s)", position.symbol, position_id)
        return {"id": position_id, "symbol": position.symbol, "product": position.product}

    def square_off(self, owner_id: str, position_id: int) -> dict:
        """Close a position at its last traded price and remove it.

        Returns:
            Dictionary with the closed position's id, symbol and product,
            and final_pnl, realized_pnl, unrealized_pnl and pnl_percentage
            as two-decimal strings.
        """
        position = self.repository.get(owner_id, position_id)
        pnl = compute_position_pnl(
            position.quantity,
            position.average_price,
            position.last_traded_price,
            position.multiplier,
            position.realized_pnl,
        )
        if not self.repository.delete_one(owner_id, position_id):
            raise NotFoundError("Position", position_id)

        logger.info(
            "Squared off %s %s (id=%s) with P&L %s",
            position.product, position.symbol, position_id, format_money(pnl.total),
        )
        return {
            "id": position_id,
            "symbol": position.symbol,
            "product": position.product,
            "final_pnl": format_money(pnl.total),
            "realized_pnl": format_money(position.realized_pnl),
            "unrealized_pnl": format_money(pnl.unrealized),
            "pnl_percentage": format_money(position.day_change_percentage),
        }

    def record_fill(
        self,
        owner_id: str,
        position_id: int,
        side: str,
        quantity: int,
        price: float,
    ) -> dict:
        """Apply an executed trade to a position.

        A fill against the open side realizes P&L on the closed quantity.
        A position brought to zero stays until it is squared off.

        Raises:
            ValidationError: If side, quantity or price is invalid.
        """
        side = (side or "").strip().upper()
        errors: dict[str, str] = {}
        if side not in ("BUY", "SELL"):
            errors["side"] = "must be BUY or SELL"
        if not isinstance(quantity, int) or quantity < 1:
            errors["quantity"] = "must be a positive integer"
        require_positive(errors, "price", price)
        if errors:
            raise ValidationError("Invalid fill", errors)

        position = self.repository.get(owner_id, position_id)
        fill = apply_fill(
            buy_quantity=position.buy_quantity,
            buy_value=position.buy_value,
            sell_quantity=position.sell_quantity,
            sell_value=position.sell_value,
            average_price=position.average_price,
            realized_pnl=position.realized_pnl,
            multiplier=position.multiplier,
            side=side,
            quantity=quantity,
            price=price,
        )
        average_price = float(fill.average_price)
        patch = {
            "quantity": fill.net_quantity,
            "average_price": average_price,
            "buy_quantity": fill.buy_quantity,
            "buy_value": float(fill.buy_value),
            "sell_quantity": fill.sell_quantity,
            "sell_value": float(fill.sell_value),
            "realized_pnl": float(fill.realized_pnl),
            **_valuation(fill.net_quantity, average_price, price, position.multiplier),
            "updated_at": self.now(),
        }
        position = self.repository.save(self.repository.apply_patch(position, patch))
        logger.info(
            "Recorded %s %d @ %s on %s (id=%s), net %d",
            side, quantity, price, position.symbol, position.id, position.quantity,
        )
        return position_to_dict(position)

    def bulk_update_prices(self, owner_id: str, updates: list[Any]) -> dict:
        """Set the last traded price of several positions.

        Each item is ``{"id": int, "price": number > 0}``. Items fail
        independently.
        """
        pairs, errors = parse_price_updates(updates, "position")
        now = self.now()
        patches = []
        for position_id, price in pairs:
            position = self.repository.find_one(owner_id, {"id": position_id})
            if position is None:
                errors.append(f"Position not found: {position_id}")
                continue
            patches.append((
                position_id,
                {
                    **_valuation(
                        position.quantity, position.average_price, price, position.multiplier
                    ),
                    "updated_at": now,
                },
            ))

        result = merge_results(self.repository.bulk_update(owner_id, patches), errors)
        logger.info(
            "Bulk price update for %s: %d updated, %d errors",
            owner_id, len(result["updated"]), len(result["errors"]),
        )
        return result
