"""Order lifecycle state machine.

PENDING (and OPEN, where present) are the only modifiable states.
EXECUTED, CANCELLED and REJECTED are terminal: no transition leaves them.
Nothing here matches orders; every status change is an explicit call.
"""

from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from tradebook.errors import (
    InvalidOrderSpec,
    InvalidTransition,
    ValidationError,
    from_pydantic,
)
from tradebook.models.order import MODIFIABLE_STATUSES, Order

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "PENDING": frozenset({"OPEN", "EXECUTED", "CANCELLED", "REJECTED"}),
    "OPEN": frozenset({"EXECUTED", "CANCELLED", "REJECTED"}),
    "EXECUTED": frozenset(),
    "CANCELLED": frozenset(),
    "REJECTED": frozenset(),
}

MODIFIABLE_FIELDS = frozenset({"quantity", "price", "validity", "trigger_price"})

# Fields the caller may supply when placing an order.
CREATE_FIELDS = frozenset({
    "symbol",
    "exchange",
    "transaction_type",
    "order_type",
    "product",
    "quantity",
    "price",
    "trigger_price",
    "validity",
    "tags",
    "notes",
    "parent_order_id",
})

PRICE_REQUIRED = frozenset({"LIMIT", "SL"})
TRIGGER_REQUIRED = frozenset({"SL", "SL-M"})


def validate_order_fields(
    order_type: str,
    price: Optional[float],
    trigger_price: Optional[float],
) -> dict[str, str]:
    """Check the per-type field rules.

    Returns:
        Mapping of field name to message; empty when the fields are valid.
    """
    errors: dict[str, str] = {}
    has_price = price is not None and price > 0
    has_trigger = trigger_price is not None and trigger_price > 0

    if order_type in PRICE_REQUIRED and not has_price:
        errors["price"] = "Price is required for LIMIT and SL orders"

    if order_type in TRIGGER_REQUIRED and not has_trigger:
        errors["trigger_price"] = "Trigger price is required for SL and SL-M orders"
    elif order_type not in TRIGGER_REQUIRED and trigger_price is not None:
        errors["trigger_price"] = "Trigger price is only valid for SL and SL-M orders"

    if order_type == "SL" and has_price and has_trigger and trigger_price >= price:
        errors["trigger_price"] = "For SL orders, trigger price must be less than limit price"

    return errors


def _order_value(price: Optional[float], quantity: int) -> float:
    return price * quantity if price is not None else 0.0


def _build(data: Mapping[str, Any], message: str) -> Order:
    try:
        return Order.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e, message) from e


def _check_rules(order: Order) -> None:
    errors = validate_order_fields(order.order_type, order.price, order.trigger_price)
    if errors:
        raise InvalidOrderSpec(f"Invalid {order.order_type} order", errors)


def create_order(owner_id: str, fields: Mapping[str, Any], now: datetime) -> Order:
    """Create a new PENDING order.

    Args:
        owner_id: Owning user ID.
        fields: Caller supplied order fields (see CREATE_FIELDS).
        now: Placement timestamp.

    Returns:
        The validated order, not yet persisted.

    Raises:
        ValidationError: If a field is unknown or malformed.
        InvalidOrderSpec: If the per-type rules are violated.
    """
    unknown = sorted(set(fields) - CREATE_FIELDS)
    if unknown:
        raise ValidationError(
            "Unknown order fields",
            {name: "field cannot be set when placing an order" for name in unknown},
        )

    order = _build(
        {
            **fields,
            "owner_id": owner_id,
            "status": "PENDING",
            "filled_quantity": 0,
            "average_price": 0.0,
            "created_at": now,
            "updated_at": now,
        },
        "Invalid order",
    )
    _check_rules(order)

    return order.model_copy(update={
        "remaining_quantity": order.quantity,
        "order_value": _order_value(order.price, order.quantity),
    })


def modify_order(order: Order, patch: Mapping[str, Any], now: datetime) -> Order:
    """Apply a patch to a modifiable order.

    Only quantity, price, validity and trigger_price may change. The
    patched order is re-validated against the same per-type rules.

    Raises:
        InvalidTransition: If the order is not PENDING/OPEN.
        ValidationError: If a field is not modifiable or malformed.
        InvalidOrderSpec: If the patched order violates the per-type rules.
    """
    if order.status not in MODIFIABLE_STATUSES:
        raise InvalidTransition(f"Cannot modify order in {order.status} status")

    forbidden = sorted(set(patch) - MODIFIABLE_FIELDS)
    if forbidden:
        raise ValidationError(
            "Fields cannot be modified",
            {name: "field is not modifiable" for name in forbidden},
        )

    updated = _build({**order.model_dump(), **patch, "updated_at": now}, "Invalid order")
    _check_rules(updated)

    if updated.quantity < updated.filled_quantity:
        raise ValidationError(
            "Invalid order",
            {"quantity": "Quantity cannot be less than the filled quantity"},
        )

    return updated.model_copy(update={
        "remaining_quantity": updated.quantity - updated.filled_quantity,
        "order_value": _order_value(updated.price, updated.quantity),
    })


def transition(order: Order, target: str, now: datetime, **changes: Any) -> Order:
    """Move an order to a new status.

    Raises:
        InvalidTransition: If the transition table forbids the move.
    """
    allowed = ALLOWED_TRANSITIONS.get(order.status, frozenset())
    if target not in allowed:
        raise InvalidTransition(f"Cannot move order from {order.status} to {target}")
    return order.model_copy(update={**changes, "status": target, "updated_at": now})


def cancel_order(order: Order, now: datetime) -> Order:
    """Cancel a PENDING/OPEN order."""
    if order.status not in MODIFIABLE_STATUSES:
        raise InvalidTransition(f"Cannot cancel order in {order.status} status")
    return transition(order, "CANCELLED", now)


def execute_order(order: Order, now: datetime, average_price: Optional[float] = None) -> Order:
    """Mark an order as fully executed.

    Args:
        order: Order to execute.
        now: Execution timestamp.
        average_price: Fill price. Defaults to the order price.
    """
    fill_price = average_price if average_price is not None else (order.price or 0.0)
    if fill_price < 0:
        raise ValidationError("Invalid fill", {"average_price": "cannot be negative"})
    return transition(
        order,
        "EXECUTED",
        now,
        average_price=fill_price,
        filled_quantity=order.quantity,
        remaining_quantity=0,
    )


def reject_order(order: Order, reason: str, now: datetime) -> Order:
    """Mark an order as rejected with a reason."""
    if not reason or not reason.strip():
        raise ValidationError("Invalid rejection", {"reason": "Rejection reason is required"})
    return transition(order, "REJECTED", now, rejection_reason=reason.strip())
