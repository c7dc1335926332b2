"""Order placement and lifecycle on top of the order repository."""

import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from tradebook.core.orders import (
    cancel_order,
    create_order,
    execute_order,
    modify_order,
    reject_order,
)
from tradebook.errors import ValidationError
from tradebook.models import Order
from tradebook.services.base import Service, serialize

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("PENDING", "OPEN", "EXECUTED", "CANCELLED", "REJECTED")
TRANSACTION_TYPES = ("BUY", "SELL")
MAX_PAGE_SIZE = 100


def order_to_dict(order: Order, now: Optional[datetime] = None) -> dict:
    """Serialize an order with its age in seconds."""
    return serialize(
        order,
        order_age=order.order_age(now),
        is_modifiable=order.is_modifiable,
    )


class OrderService(Service):
    """Places orders and moves them through their lifecycle."""

    def place_order(self, owner_id: str, **fields: Any) -> dict:
        """Place a new PENDING order.

        Args:
            owner_id: Owning user ID.
            **fields: symbol, transaction_type, quantity and optionally
                exchange, order_type, product, price, trigger_price,
                validity, tags, notes, parent_order_id.

        Raises:
            ValidationError: If the fields are malformed or violate the
                rules of the order type.
        """
        now = self.now()
        order = self.repository.save(create_order(owner_id, fields, now))
        logger.info(
            "Placed %s %s order %s x%d for %s (id=%s)",
            order.order_type, order.transaction_type, order.symbol,
            order.quantity, owner_id, order.id,
        )
        return order_to_dict(order, now)

    def list_orders(
        self,
        owner_id: str,
        status: Optional[str] = None,
        transaction_type: Optional[str] = None,
        on_date: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """List orders, newest first, with pagination.

        Args:
            owner_id: Owning user ID.
            status: Only orders in this status.
            transaction_type: Only BUY or SELL orders.
            on_date: Only orders placed on this calendar day.
            page: 1-based page number.
            limit: Page size, at most MAX_PAGE_SIZE.

        Returns:
            Dictionary containing:
            - orders: Serialized orders of the page
            - pagination: total, page and pages
        """
        errors: dict[str, str] = {}
        filters: dict[str, Any] = {}
        if status is not None:
            status = status.strip().upper()
            if status not in ORDER_STATUSES:
                errors["status"] = f"must be one of {', '.join(ORDER_STATUSES)}"
            filters["status"] = status
        if transaction_type is not None:
            transaction_type = transaction_type.strip().upper()
            if transaction_type not in TRANSACTION_TYPES:
                errors["transaction_type"] = "must be BUY or SELL"
            filters["transaction_type"] = transaction_type
        if not isinstance(page, int) or page < 1:
            errors["page"] = "must be a positive integer"
        if not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
            errors["limit"] = f"must be between 1 and {MAX_PAGE_SIZE}"
        if errors:
            raise ValidationError("Invalid order query", errors)

        if on_date is not None:
            start = datetime.combine(on_date, time.min)
            filters["created_at__gte"] = start
            filters["created_at__lt"] = start + timedelta(days=1)

        total = self.repository.count(owner_id, filters)
        orders = self.repository.find_many(
            owner_id,
            filters,
            sort=["-created_at"],
            limit=limit,
            offset=(page - 1) * limit,
        )
        now = self.now()
        return {
            "orders": [order_to_dict(o, now) for o in orders],
            "pagination": {
                "total": total,
                "page": page,
                "pages": math.ceil(total / limit),
            },
        }

    def get_order(self, owner_id: str, order_id: int) -> dict:
        return order_to_dict(self.repository.get(owner_id, order_id), self.now())

    def modify_order(self, owner_id: str, order_id: int, **patch: Any) -> dict:
        """Change quantity, price, validity or trigger price of an open order.

        Raises:
            NotFoundError: If the order does not exist for the owner.
            InvalidTransition: If the order is no longer modifiable.
            ValidationError: If the patched order is invalid.
        """
        if not patch:
            raise ValidationError("Invalid order update", {"__root__": "nothing to update"})
        now = self.now()
        order = self.repository.get(owner_id, order_id)
        order = self.repository.save(modify_order(order, patch, now))
        logger.info("Modified order %s: %s", order_id, ", ".join(sorted(patch)))
        return order_to_dict(order, now)

    def cancel_order(self, owner_id: str, order_id: int) -> dict:
        now = self.now()
        order = self.repository.save(cancel_order(self.repository.get(owner_id, order_id), now))
        logger.info("Cancelled order %s", order_id)
        return order_to_dict(order, now)

    def execute_order(
        self, owner_id: str, order_id: int, average_price: Optional[float] = None
    ) -> dict:
        """Mark an order as executed at average_price (default: its price)."""
        now = self.now()
        order = self.repository.get(owner_id, order_id)
        order = self.repository.save(execute_order(order, now, average_price))
        logger.info("Executed order %s @ %s", order_id, order.average_price)
        return order_to_dict(order, now)

    def reject_order(self, owner_id: str, order_id: int, reason: str) -> dict:
        now = self.now()
        order = self.repository.get(owner_id, order_id)
        order = self.repository.save(reject_order(order, reason, now))
        logger.info("Rejected order %s: %s", order_id, order.rejection_reason)
        return order_to_dict(order, now)
