"""Repository contract shared by every storage backend.

All operations are scoped by owner ID: a backend never returns, updates or
deletes a row that belongs to another owner, and reports such a row as not
found.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from tradebook.errors import NotFoundError, TradeBookError, ValidationError, from_pydantic

T = TypeVar("T", bound=BaseModel)

FILTER_OPERATORS = ("gte", "gt", "lte", "lt")

# Identity fields cannot be changed through a patch.
PROTECTED_FIELDS = frozenset({"id", "owner_id", "created_at"})


class BulkUpdateResult(BaseModel):
    """Outcome of a bulk update: ids that were written and per-item errors."""

    updated: list[int] = Field(default_factory=list, description="Updated entity IDs")
    errors: list[str] = Field(default_factory=list, description="Per-item error messages")

    def as_dict(self) -> dict:
        return {"updated": list(self.updated), "errors": list(self.errors)}


def split_filter_key(key: str) -> tuple[str, Optional[str]]:
    """Split ``created_at__gte`` into (``created_at``, ``gte``)."""
    field, sep, op = key.partition("__")
    if sep and op in FILTER_OPERATORS:
        return field, op
    return key, None


class Repository(ABC, Generic[T]):
    """Abstract base class for entity repositories.

    Subclasses store one entity type (``model``) and implement the
    owner-scoped primitives. ``bulk_update`` is built on top of them.
    """

    def __init__(self, model: type[T], entity_name: str):
        """Initialize the repository.

        Args:
            model: pydantic model stored by this repository.
            entity_name: Human readable entity name used in messages.
        """
        self.model = model
        self.entity_name = entity_name

    @property
    def fields(self) -> list[str]:
        return list(self.model.model_fields)

    def check_fields(self, names: list[str]) -> None:
        """Reject filter or sort keys that are not model fields.

        Raises:
            ValidationError: If a key names an unknown field.
        """
        unknown = [name for name in names if name not in self.model.model_fields]
        if unknown:
            raise ValidationError(
                f"Unknown {self.entity_name.lower()} fields",
                {name: "unknown field" for name in unknown},
            )

    def check_filters(self, filters: Optional[dict[str, Any]]) -> dict[str, Any]:
        filters = dict(filters or {})
        filters.pop("owner_id", None)
        self.check_fields([split_filter_key(key)[0] for key in filters])
        return filters

    def check_sort(self, sort: Optional[list[str]]) -> list[tuple[str, bool]]:
        """Parse sort keys into (field, descending) pairs."""
        parsed = [(key.lstrip("-"), key.startswith("-")) for key in (sort or [])]
        self.check_fields([field for field, _ in parsed])
        return parsed

    @abstractmethod
    def find_one(self, owner_id: str, filters: dict[str, Any]) -> Optional[T]:
        """Find the first entity of an owner matching the filters.

        Args:
            owner_id: Owning user ID.
            filters: Field equality filters; ``field__gte`` style keys
                compare instead.

        Returns:
            The entity if found, None otherwise.
        """
        pass

    @abstractmethod
    def find_many(
        self,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[list[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[T]:
        """Find entities of an owner.

        Args:
            owner_id: Owning user ID.
            filters: Field filters, as for find_one.
            sort: Field names, ``-`` prefix for descending.
            limit: Maximum number of rows.
            offset: Rows to skip.

        Returns:
            List of matching entities.
        """
        pass

    @abstractmethod
    def count(self, owner_id: str, filters: Optional[dict[str, Any]] = None) -> int:
        """Count entities of an owner matching the filters."""
        pass

    @abstractmethod
    def save(self, entity: T) -> T:
        """Insert (id is None) or update an entity.

        Returns:
            The stored entity, with its ID assigned.

        Raises:
            ConflictError: If a uniqueness constraint is violated.
            NotFoundError: If the entity to update does not exist for its owner.
        """
        pass

    @abstractmethod
    def delete_one(self, owner_id: str, entity_id: int) -> bool:
        """Delete an entity of an owner.

        Returns:
            True if a row was deleted, False otherwise.
        """
        pass

    def get(self, owner_id: str, entity_id: int) -> T:
        """Get an entity by ID.

        Raises:
            NotFoundError: If absent or owned by someone else.
        """
        entity = self.find_one(owner_id, {"id": entity_id})
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def apply_patch(self, entity: T, patch: dict[str, Any]) -> T:
        """Return a validated copy of entity with patch applied.

        Raises:
            ValidationError: If the patch touches identity fields or is invalid.
        """
        protected = sorted(PROTECTED_FIELDS & set(patch))
        if protected:
            raise ValidationError(
                "Identity fields cannot be updated",
                {name: "field is read-only" for name in protected},
            )
        self.check_fields(list(patch))
        data = {**entity.model_dump(), **patch}
        if "updated_at" in self.model.model_fields and "updated_at" not in patch:
            data["updated_at"] = datetime.now()
        try:
            return self.model.model_validate(data)
        except PydanticValidationError as e:
            raise from_pydantic(e, f"Invalid {self.entity_name.lower()} update") from e

    def bulk_update(
        self, owner_id: str, updates: list[tuple[Any, Any]]
    ) -> BulkUpdateResult:
        """Apply independent (id, patch) pairs.

        A failing item (unknown id, malformed patch, rejected write) is
        recorded in the result and does not stop the remaining items.

        Args:
            owner_id: Owning user ID.
            updates: List of (entity id, partial fields) pairs.

        Returns:
            BulkUpdateResult with the updated IDs and per-item errors.
        """
        result = BulkUpdateResult()
        label = self.entity_name.lower()

        for entity_id, patch in updates:
            if not isinstance(entity_id, int) or not isinstance(patch, dict) or not patch:
                result.errors.append(f"Invalid update data for {label}: {entity_id}")
                continue

            entity = self.find_one(owner_id, {"id": entity_id})
            if entity is None:
                result.errors.append(f"{self.entity_name} not found: {entity_id}")
                continue

            try:
                self.save(self.apply_patch(entity, patch))
            except TradeBookError as e:
                result.errors.append(f"Invalid update data for {label}: {entity_id} ({e})")
                continue

            result.updated.append(entity_id)

        return result
