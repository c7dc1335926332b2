"""Holding bookkeeping: CRUD, price refresh and portfolio totals."""

import logging
from typing import Any, Optional

from tradebook.core.valuation import (
    ValuationEntry,
    aggregate_portfolio,
    compute_holding_metrics,
    format_money,
)
from tradebook.errors import ConflictError, NotFoundError, ValidationError
from tradebook.market.base import PriceSource
from tradebook.models import Holding
from tradebook.services.base import (
    Service,
    build,
    merge_results,
    parse_price_updates,
    require_positive,
    serialize,
)

logger = logging.getLogger(__name__)

# Fields a caller may set besides the valued ones.
EXTRA_FIELDS = frozenset({
    "exchange",
    "pledged_quantity",
    "collateral_quantity",
    "t1_quantity",
    "isin",
    "company_name",
    "sector",
})


def holding_to_dict(holding: Holding) -> dict:
    """Serialize a holding with its derived values as two-decimal strings."""
    percentage = holding.profit_loss_percentage
    return serialize(
        holding,
        invested_amount=format_money(holding.invested_amount),
        current_value=format_money(holding.current_value),
        profit_loss=format_money(holding.profit_loss),
        profit_loss_percentage=format_money(percentage) if percentage is not None else None,
        available_quantity=holding.available_quantity,
    )


def _price_fields(quantity: int, average_price: float, current_price: float) -> dict[str, Any]:
    metrics = compute_holding_metrics(quantity, average_price, current_price)
    return {
        "current_price": current_price,
        "day_change": float(metrics.net),
        "day_change_percentage": float(metrics.day_pct),
    }


class HoldingService(Service):
    """Manages the delivery holdings of an owner."""

    def list_holdings(self, owner_id: str) -> dict:
        """List holdings sorted by symbol, with portfolio metrics.

        Returns:
            Dictionary containing:
            - holdings: Serialized holdings
            - metrics: total_investment, current_value, todays_pnl,
              total_pnl and total_pnl_percentage as two-decimal strings
        """
        holdings = self.repository.find_many(owner_id, sort=["symbol"])
        metrics = aggregate_portfolio(
            ValuationEntry(
                avg=h.average_price,
                price=h.current_price,
                qty=h.quantity,
                net=h.day_change,
            )
            for h in holdings
        )
        return {
            "holdings": [holding_to_dict(h) for h in holdings],
            "metrics": metrics.as_display("todays_pnl"),
        }

    def get_holding(self, owner_id: str, holding_id: int) -> dict:
        return holding_to_dict(self.repository.get(owner_id, holding_id))

    def add_holding(
        self,
        owner_id: str,
        symbol: str,
        quantity: int,
        average_price: float,
        current_price: float,
        **extra: Any,
    ) -> dict:
        """Add a holding.

        Args:
            owner_id: Owning user ID.
            symbol: Trading symbol.
            quantity: Quantity held, at least 1.
            average_price: Average buy price, greater than 0.
            current_price: Current market price, greater than 0.
            **extra: Optional fields (exchange, isin, company_name...).

        Returns:
            The stored holding.

        Raises:
            ValidationError: If a field is missing or out of range.
            ConflictError: If the owner already holds the symbol.
        """
        errors: dict[str, str] = {}
        if not isinstance(quantity, int) or quantity < 1:
            errors["quantity"] = "must be a positive integer"
        require_positive(errors, "average_price", average_price)
        require_positive(errors, "current_price", current_price)
        for name in sorted(set(extra) - EXTRA_FIELDS):
            errors[name] = "unknown field"
        if errors:
            raise ValidationError("Invalid holding", errors)

        now = self.now()
        holding = build(
            Holding,
            {
                **extra,
                "owner_id": owner_id,
                "symbol": symbol,
                "quantity": quantity,
                "average_price": average_price,
                **_price_fields(quantity, average_price, current_price),
                "created_at": now,
                "updated_at": now,
            },
            "Invalid holding",
        )

        existing = self.repository.find_one(owner_id, {"symbol": holding.symbol})
        if existing is not None:
            raise ConflictError("You already have a position in this stock")

        holding = self.repository.save(holding)
        logger.info("Added holding %s for %s (id=%s)", holding.symbol, owner_id, holding.id)
        return holding_to_dict(holding)

    def update_holding(
        self,
        owner_id: str,
        holding_id: int,
        quantity: Optional[int] = None,
        average_price: Optional[float] = None,
        current_price: Optional[float] = None,
    ) -> dict:
        """Update quantity and prices of a holding; P&L fields are recomputed.

        Raises:
            NotFoundError: If the holding does not exist for the owner.
            ValidationError: If a value is out of range or nothing changes.
        """
        errors: dict[str, str] = {}
        if quantity is not None and (not isinstance(quantity, int) or quantity < 1):
            errors["quantity"] = "must be a positive integer"
        if average_price is not None:
            require_positive(errors, "average_price", average_price)
        if current_price is not None:
            require_positive(errors, "current_price", current_price)
        if quantity is None and average_price is None and current_price is None:
            errors["__root__"] = "nothing to update"
        if errors:
            raise ValidationError("Invalid holding update", errors)

        holding = self.repository.get(owner_id, holding_id)
        quantity = holding.quantity if quantity is None else quantity
        average_price = holding.average_price if average_price is None else average_price
        current_price = holding.current_price if current_price is None else current_price

        patch = {
            "quantity": quantity,
            "average_price": average_price,
            **_price_fields(quantity, average_price, current_price),
            "updated_at": self.now(),
        }
        holding = self.repository.save(self.repository.apply_patch(holding, patch))
        logger.debug("Updated holding %s (id=%s)", holding.symbol, holding.id)
        return holding_to_dict(holding)

    def delete_holding(self, owner_id: str, holding_id: int) -> dict:
        """Delete a holding.

        Returns:
            Dictionary with the deleted id and symbol.
        """
        holding = self.repository.get(owner_id, holding_id)
        if not self.repository.delete_one(owner_id, holding_id):
            raise NotFoundError("Holding", holding_id)
        logger.info("Deleted holding %s (id=%s)", holding.symbol, holding_id)
        return {"id": holding_id, "symbol": holding.symbol}

    def bulk_update_prices(self, owner_id: str, updates: list[Any]) -> dict:
        """Set the current price of several holdings.

        Each item is ``{"id": int, "price": number > 0}``. Items fail
        independently.

        Returns:
            Dictionary with ``updated`` ids and ``errors`` messages.
        """
        pairs, errors = parse_price_updates(updates, "holding")
        now = self.now()
        patches = []
        for holding_id, price in pairs:
            holding = self.repository.find_one(owner_id, {"id": holding_id})
            if holding is None:
                errors.append(f"Holding not found: {holding_id}")
                continue
            patches.append((
                holding_id,
                {
                    **_price_fields(holding.quantity, holding.average_price, price),
                    "updated_at": now,
                },
            ))

        result = merge_results(self.repository.bulk_update(owner_id, patches), errors)
        logger.info(
            "Bulk price update for %s: %d updated, %d errors",
            owner_id, len(result["updated"]), len(result["errors"]),
        )
        return result

    def refresh_prices(self, owner_id: str, price_source: PriceSource) -> dict:
        """Pull the last traded price of every holding from a price source."""
        updates = [
            {"id": h.id, "price": price_source.get_quote(h.symbol, h.exchange).ltp}
            for h in self.repository.find_many(owner_id)
        ]
        return self.bulk_update_prices(owner_id, updates)
