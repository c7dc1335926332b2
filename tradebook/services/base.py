"""Shared plumbing for the repository-backed services."""

from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tradebook.db.base import BulkUpdateResult, Repository, T
from tradebook.errors import from_pydantic

Clock = Callable[[], datetime]


def build(model: type[T], data: Mapping[str, Any], message: str) -> T:
    """Validate data into a model, translating pydantic errors."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e, message) from e


def serialize(entity: BaseModel, **derived: Any) -> dict:
    """Dump stored fields as JSON types and append derived values."""
    data = entity.model_dump(mode="json")
    data.update(derived)
    return data


def require_positive(errors: dict[str, str], name: str, value: Optional[float]) -> None:
    if value is None or value <= 0:
        errors[name] = "must be greater than 0"


def parse_price_updates(
    updates: list[Any], label: str
) -> tuple[list[tuple[int, float]], list[str]]:
    """Split raw ``{"id": .., "price": ..}`` items into valid pairs and errors.

    Args:
        updates: Items as read from the caller (JSON objects).
        label: Entity label used in error messages.

    Returns:
        Tuple of (valid (id, price) pairs, error messages).
    """
    pairs: list[tuple[int, float]] = []
    errors: list[str] = []
    for update in updates:
        entity_id = update.get("id") if isinstance(update, Mapping) else None
        price = update.get("price") if isinstance(update, Mapping) else None
        if (
            not isinstance(entity_id, int)
            or isinstance(entity_id, bool)
            or not isinstance(price, (int, float))
            or isinstance(price, bool)
            or price <= 0
        ):
            errors.append(f"Invalid update data for {label}: {entity_id}")
            continue
        pairs.append((entity_id, float(price)))
    return pairs, errors


def merge_results(result: BulkUpdateResult, errors: list[str]) -> dict:
    return {"updated": list(result.updated), "errors": [*errors, *result.errors]}


class Service:
    """Base class holding a repository and a clock."""

    def __init__(self, repository: Repository, clock: Clock = datetime.now):
        """Initialize the service.

        Args:
            repository: Repository of the entity the service manages.
            clock: Callable returning the current time.
        """
        self.repository = repository
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()
