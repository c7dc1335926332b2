"""Set operations over a watchlist's ordered items.

Items are identified by their (symbol, exchange) pair. Every function
returns a new Watchlist; the caller persists it.
"""

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from tradebook.errors import DuplicateEntry, NotFoundError, SetMismatch, from_pydantic
from tradebook.models.common import normalize_exchange, normalize_symbol
from tradebook.models.watchlist import Watchlist, WatchlistItem

ItemLike = Union[WatchlistItem, Mapping[str, Any]]


def as_item(value: ItemLike) -> WatchlistItem:
    """Coerce a mapping into a WatchlistItem."""
    if isinstance(value, WatchlistItem):
        return value
    try:
        return WatchlistItem.model_validate(value)
    except PydanticValidationError as e:
        raise from_pydantic(e, "Invalid stock") from e


def _key(value: Union[ItemLike, tuple[str, str]]) -> tuple[str, str]:
    if isinstance(value, tuple):
        symbol, exchange = value
        return (normalize_symbol(symbol), normalize_exchange(exchange))
    return as_item(value).key


def has_symbol(watchlist: Watchlist, symbol: str, exchange: str = "NSE") -> bool:
    key = _key((symbol, exchange))
    return any(item.key == key for item in watchlist.items)


def add_stock(watchlist: Watchlist, stock: ItemLike, now: Optional[datetime] = None) -> Watchlist:
    """Append a stock to the watchlist.

    Raises:
        DuplicateEntry: If (symbol, exchange) is already present.
    """
    item = as_item(stock)
    if has_symbol(watchlist, item.symbol, item.exchange):
        raise DuplicateEntry(
            f"{item.symbol}:{item.exchange} is already in watchlist '{watchlist.name}'"
        )
    return watchlist.model_copy(update={
        "items": [*watchlist.items, item],
        "updated_at": now or datetime.now(),
    })


def remove_stock(
    watchlist: Watchlist,
    symbol: str,
    exchange: str = "NSE",
    now: Optional[datetime] = None,
) -> Watchlist:
    """Remove a stock, keeping the order of the remaining items.

    Raises:
        NotFoundError: If (symbol, exchange) is not present.
    """
    key = _key((symbol, exchange))
    remaining = [item for item in watchlist.items if item.key != key]
    if len(remaining) == len(watchlist.items):
        raise NotFoundError("Stock", f"{key[0]}:{key[1]}")
    return watchlist.model_copy(update={
        "items": remaining,
        "updated_at": now or datetime.now(),
    })


def reorder(
    watchlist: Watchlist,
    new_order: Iterable[Union[ItemLike, tuple[str, str]]],
    now: Optional[datetime] = None,
) -> Watchlist:
    """Reorder items. new_order must be a permutation of the current items.

    Item payloads (prices, notes) are kept from the current list; only
    the order comes from new_order.

    Raises:
        SetMismatch: If new_order adds, drops or repeats an item.
    """
    keys = [_key(value) for value in new_order]
    current = {item.key: item for item in watchlist.items}

    missing = [f"{s}:{e}" for (s, e) in current if (s, e) not in keys]
    unknown = [f"{s}:{e}" for (s, e) in keys if (s, e) not in current]
    errors: dict[str, str] = {}
    if len(keys) != len(current) or len(set(keys)) != len(keys):
        errors["items"] = "The new order must contain every existing stock exactly once"
    if missing:
        errors["missing"] = ", ".join(missing)
    if unknown:
        errors["unknown"] = ", ".join(unknown)
    if errors:
        raise SetMismatch("Reorder must be a permutation of the watchlist", errors)

    return watchlist.model_copy(update={
        "items": [current[key] for key in keys],
        "updated_at": now or datetime.now(),
    })


def update_prices(
    watchlist: Watchlist,
    updates: Iterable[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Watchlist:
    """Refresh price fields of matching items; unknown items are ignored."""
    by_key = {}
    for update in updates:
        key = _key((update["symbol"], update.get("exchange", "NSE")))
        by_key[key] = {
            field: update[field]
            for field in ("last_price", "change_value", "change_percentage")
            if field in update
        }

    items = []
    for item in watchlist.items:
        if item.key in by_key:
            try:
                item = WatchlistItem.model_validate({**item.model_dump(), **by_key[item.key]})
            except PydanticValidationError as e:
                raise from_pydantic(e, "Invalid price update") from e
        items.append(item)

    return watchlist.model_copy(update={"items": items, "updated_at": now or datetime.now()})
