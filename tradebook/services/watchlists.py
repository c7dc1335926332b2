"""Repository-backed watchlist management.

Every owner has at most one default watchlist. Marking a watchlist as
default clears the flag on the owner's other watchlists in an explicit
enforce_single_default step.
"""

import logging
from typing import Any, Iterable, Optional

from tradebook.core import watchlist as ops
from tradebook.errors import ConflictError, NotFoundError, ValidationError
from tradebook.market.base import PriceSource
from tradebook.models import Watchlist
from tradebook.services.base import Service, build, serialize

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Default"
DEFAULT_SYMBOLS = ["INFY", "TCS", "WIPRO", "RELIANCE", "HDFCBANK"]

# Fields a caller may set when creating a watchlist.
CREATE_FIELDS = frozenset({"description", "is_default", "sort_order", "color", "icon"})


def watchlist_to_dict(watchlist: Watchlist) -> dict:
    return serialize(watchlist, items_count=watchlist.items_count)


class WatchlistManager(Service):
    """Creates watchlists and edits their ordered items."""

    def list(self, owner_id: str) -> list[dict]:
        """List watchlists: default first, then by sort order and name."""
        watchlists = self.repository.find_many(
            owner_id, sort=["-is_default", "sort_order", "name"]
        )
        return [watchlist_to_dict(w) for w in watchlists]

    def _find(self, owner_id: str, watchlist_id: int) -> Watchlist:
        return self.repository.get(owner_id, watchlist_id)

    def get(self, owner_id: str, watchlist_id: int) -> dict:
        return watchlist_to_dict(self._find(owner_id, watchlist_id))

    def find_by_name(self, owner_id: str, name: str) -> Optional[Watchlist]:
        return self.repository.find_one(owner_id, {"name": name.strip()})

    def create(self, owner_id: str, name: str, **fields: Any) -> dict:
        """Create an empty watchlist.

        Args:
            owner_id: Owning user ID.
            name: Name, unique per owner.
            **fields: description, is_default, sort_order, color, icon.

        Raises:
            ValidationError: If a field is unknown or malformed.
            ConflictError: If the owner already has a watchlist with this name.
        """
        unknown = sorted(set(fields) - CREATE_FIELDS)
        if unknown:
            raise ValidationError(
                "Invalid watchlist",
                {field: "unknown field" for field in unknown},
            )

        now = self.now()
        watchlist = build(
            Watchlist,
            {**fields, "owner_id": owner_id, "name": name, "created_at": now, "updated_at": now},
            "Invalid watchlist",
        )
        if self.find_by_name(owner_id, watchlist.name) is not None:
            raise ConflictError("Watchlist with this name already exists")

        watchlist = self.repository.save(watchlist)
        logger.info("Created watchlist '%s' for %s (id=%s)", watchlist.name, owner_id, watchlist.id)
        if watchlist.is_default:
            self.enforce_single_default(owner_id, watchlist.id)
        return watchlist_to_dict(watchlist)

    def delete(self, owner_id: str, watchlist_id: int) -> dict:
        watchlist = self._find(owner_id, watchlist_id)
        if not self.repository.delete_one(owner_id, watchlist_id):
            raise NotFoundError("Watchlist", watchlist_id)
        logger.info("Deleted watchlist '%s' (id=%s)", watchlist.name, watchlist_id)
        return {"id": watchlist_id, "name": watchlist.name}

    def _store(self, watchlist: Watchlist) -> dict:
        return watchlist_to_dict(self.repository.save(watchlist))

    def add_stock(self, owner_id: str, watchlist_id: int, stock: Any) -> dict:
        """Append a stock to a watchlist.

        Args:
            owner_id: Owning user ID.
            watchlist_id: Target watchlist.
            stock: Mapping with symbol, and optionally exchange and notes.

        Raises:
            DuplicateEntry: If (symbol, exchange) is already in the list.
        """
        watchlist = ops.add_stock(self._find(owner_id, watchlist_id), stock, self.now())
        logger.debug("Added %s to watchlist %s", watchlist.items[-1].symbol, watchlist_id)
        return self._store(watchlist)

    def remove_stock(
        self, owner_id: str, watchlist_id: int, symbol: str, exchange: str = "NSE"
    ) -> dict:
        watchlist = self._find(owner_id, watchlist_id)
        watchlist = ops.remove_stock(watchlist, symbol, exchange, self.now())
        logger.debug("Removed %s from watchlist %s", symbol, watchlist_id)
        return self._store(watchlist)

    def reorder(self, owner_id: str, watchlist_id: int, new_order: Iterable[Any]) -> dict:
        """Reorder items; new_order must be a permutation of the current items.

        Raises:
            SetMismatch: If new_order adds, drops or repeats a stock.
        """
        watchlist = ops.reorder(self._find(owner_id, watchlist_id), new_order, self.now())
        return self._store(watchlist)

    def set_default(self, owner_id: str, watchlist_id: int) -> dict:
        watchlist = self._find(owner_id, watchlist_id)
        if not watchlist.is_default:
            watchlist = self.repository.save(
                watchlist.model_copy(update={"is_default": True, "updated_at": self.now()})
            )
        self.enforce_single_default(owner_id, watchlist_id)
        logger.info("Watchlist '%s' is now the default", watchlist.name)
        return watchlist_to_dict(watchlist)

    def enforce_single_default(self, owner_id: str, watchlist_id: int) -> dict:
        """Clear the default flag on every other watchlist of the owner.

        Returns:
            Dictionary with ``updated`` ids and ``errors`` messages.
        """
        others = self.repository.find_many(owner_id, {"is_default": True})
        now = self.now()
        updates = [
            (w.id, {"is_default": False, "updated_at": now})
            for w in others
            if w.id != watchlist_id
        ]
        result = self.repository.bulk_update(owner_id, updates)
        if result.errors:
            logger.error("Failed to clear default flag: %s", "; ".join(result.errors))
        return result.as_dict()

    def get_default(self, owner_id: str) -> Optional[dict]:
        watchlist = self.repository.find_one(owner_id, {"is_default": True})
        return watchlist_to_dict(watchlist) if watchlist else None

    def _claim_default(self, owner_id: str) -> Optional[Watchlist]:
        """Return the owner's default watchlist, flagging one named Default if needed."""
        watchlist = self.repository.find_one(owner_id, {"is_default": True})
        if watchlist is not None:
            return watchlist
        watchlist = self.find_by_name(owner_id, DEFAULT_NAME)
        if watchlist is None:
            return None
        self.set_default(owner_id, watchlist.id)
        return self._find(owner_id, watchlist.id)

    def _default_or_create(self, owner_id: str) -> Watchlist:
        watchlist = self._claim_default(owner_id)
        if watchlist is not None:
            return watchlist
        created = self.create(
            owner_id,
            DEFAULT_NAME,
            description="My default watchlist",
            is_default=True,
        )
        return self._find(owner_id, created["id"])

    def add_to_default(self, owner_id: str, stock: Any) -> dict:
        """Add a stock to the default watchlist, creating it when missing."""
        watchlist = self._default_or_create(owner_id)
        return self.add_stock(owner_id, watchlist.id, stock)

    def remove_from_default(self, owner_id: str, symbol: str, exchange: str = "NSE") -> dict:
        watchlist = self.repository.find_one(owner_id, {"is_default": True})
        if watchlist is None:
            raise NotFoundError("Default watchlist")
        return self.remove_stock(owner_id, watchlist.id, symbol, exchange)

    def initialize_default(self, owner_id: str) -> dict:
        """Create the default watchlist seeded with a few large caps.

        An existing watchlist named Default is flagged and seeded instead
        of creating a second one.

        Raises:
            ConflictError: If the owner already has a default watchlist.
        """
        if self.repository.find_one(owner_id, {"is_default": True}) is not None:
            raise ConflictError("Default watchlist already exists")
        watchlist = self._default_or_create(owner_id)
        for symbol in DEFAULT_SYMBOLS:
            if not ops.has_symbol(watchlist, symbol):
                watchlist = ops.add_stock(watchlist, {"symbol": symbol}, self.now())
        return self._store(watchlist)

    def refresh_prices(self, owner_id: str, watchlist_id: int, price_source: PriceSource) -> dict:
        """Refresh item prices of a watchlist from a price source."""
        watchlist = self._find(owner_id, watchlist_id)
        updates = []
        for item in watchlist.items:
            quote = price_source.get_quote(item.symbol, item.exchange)
            updates.append({
                "symbol": item.symbol,
                "exchange": item.exchange,
                "last_price": quote.ltp,
                "change_value": quote.change,
                "change_percentage": quote.change_percent,
            })
        return self._store(ops.update_prices(watchlist, updates, self.now()))
