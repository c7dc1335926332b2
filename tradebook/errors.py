"""Error taxonomy for TradeBook.

Every failure raised by the core, the services and the repositories is a
subclass of TradeBookError so that transports (the CLI, or any other
caller) can render them uniformly.
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError


class TradeBookError(Exception):
    """Base class for all TradeBook errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TradeBookError):
    """Malformed or missing input.

    Attributes:
        errors: Mapping of field name to a human readable message.
    """

    def __init__(self, message: str, errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.errors = dict(errors or {})

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        details = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        return f"{self.message} ({details})"


class InvalidOrderSpec(ValidationError):
    """Order fields violate the rules of its order type."""


class SetMismatch(ValidationError):
    """A reorder request is not a permutation of the current items."""


class DivisionUndefined(ValidationError):
    """Average price is zero, so a per-unit percentage is undefined."""


class UndefinedPercentage(ValidationError):
    """Percentage requested against a zero base."""


class NotFoundError(TradeBookError):
    """Entity absent or not owned by the caller."""

    def __init__(self, entity: str, entity_id: object = None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(TradeBookError):
    """Entity already exists (holding, position, watchlist name...)."""


class DuplicateEntry(ConflictError):
    """Stock already present in a watchlist."""


class InvalidTransition(TradeBookError):
    """Order state machine rule violation."""


class InternalError(TradeBookError):
    """Persistence or unexpected failure. Detail is logged, not exposed."""

    def __init__(self, message: str = "An unexpected error occurred. Please try again later."):
        super().__init__(message)


def from_pydantic(exc: PydanticValidationError, message: str = "Invalid input") -> ValidationError:
    """Translate a pydantic ValidationError into a TradeBook ValidationError.

    Args:
        exc: The error raised while building a model.
        message: Top-level message for the translated error.

    Returns:
        ValidationError with one entry per failing field.
    """
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        errors.setdefault(field, err.get("msg", "invalid value"))
    return ValidationError(message, errors)
