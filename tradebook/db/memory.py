"""In-memory repository backend.

Used for tests and for embedding TradeBook without a database file.
Behaves like the SQLite backend: owner scoping, per-owner uniqueness and
integer IDs assigned on insert.
"""

import operator
from typing import Any, Optional

from tradebook.db.base import Repository, T, split_filter_key
from tradebook.errors import ConflictError, NotFoundError
from tradebook.models import Holding, Order, Position, Watchlist

OPERATORS = {
    None: operator.eq,
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}


class InMemoryRepository(Repository[T]):
    """Dict-backed repository."""

    def __init__(
        self,
        model: type[T],
        entity_name: str,
        unique_together: tuple[str, ...] = (),
    ):
        """Initialize the repository.

        Args:
            model: pydantic model stored by this repository.
            entity_name: Human readable entity name.
            unique_together: Fields that must be unique per owner.
        """
        super().__init__(model, entity_name)
        self._rows: dict[int, T] = {}
        self._next_id = 1
        self._unique_together = unique_together

    def _matches(self, entity: T, owner_id: str, filters: dict[str, Any]) -> bool:
        if getattr(entity, "owner_id") != owner_id:
            return False
        for key, expected in filters.items():
            field, op = split_filter_key(key)
            actual = getattr(entity, field)
            if op is not None and (actual is None or expected is None):
                return False
            if not OPERATORS[op](actual, expected):
                return False
        return True

    def _select(self, owner_id: str, filters: Optional[dict[str, Any]]) -> list[T]:
        filters = self.check_filters(filters)
        return [
            entity
            for _, entity in sorted(self._rows.items())
            if self._matches(entity, owner_id, filters)
        ]

    def find_one(self, owner_id: str, filters: dict[str, Any]) -> Optional[T]:
        rows = self._select(owner_id, filters)
        return rows[0] if rows else None

    def find_many(
        self,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[list[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[T]:
        rows = self._select(owner_id, filters)
        # Stable sorts applied last key first give a multi-key ordering.
        for field, descending in reversed(self.check_sort(sort)):
            rows.sort(
                key=lambda e: (getattr(e, field) is None, getattr(e, field)),
                reverse=descending,
            )
        rows = rows[offset:]
        return rows[:limit] if limit is not None else rows

    def count(self, owner_id: str, filters: Optional[dict[str, Any]] = None) -> int:
        return len(self._select(owner_id, filters))

    def _check_unique(self, entity: T) -> None:
        if not self._unique_together:
            return
        key = tuple(getattr(entity, field) for field in self._unique_together)
        for row_id, row in self._rows.items():
            if row_id == entity.id or row.owner_id != entity.owner_id:
                continue
            if tuple(getattr(row, field) for field in self._unique_together) == key:
                raise ConflictError(f"{self.entity_name} already exists")

    def save(self, entity: T) -> T:
        if entity.id is None:
            entity = entity.model_copy(update={"id": self._next_id})
            self._check_unique(entity)
            self._next_id += 1
        else:
            existing = self._rows.get(entity.id)
            if existing is None or existing.owner_id != entity.owner_id:
                raise NotFoundError(self.entity_name, entity.id)
            self._check_unique(entity)
        self._rows[entity.id] = entity
        return entity

    def delete_one(self, owner_id: str, entity_id: int) -> bool:
        existing = self._rows.get(entity_id)
        if existing is None or existing.owner_id != owner_id:
            return False
        del self._rows[entity_id]
        return True


class MemoryStore:
    """In-memory counterpart of DataStore, with the same repositories."""

    def __init__(self):
        self.holdings = InMemoryRepository(Holding, "Holding", unique_together=("symbol",))
        self.positions = InMemoryRepository(
            Position, "Position", unique_together=("symbol", "product")
        )
        self.orders = InMemoryRepository(Order, "Order")
        self.watchlists = InMemoryRepository(Watchlist, "Watchlist", unique_together=("name",))
