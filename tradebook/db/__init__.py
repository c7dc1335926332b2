"""Storage backends for TradeBook."""

from tradebook.db.base import BulkUpdateResult, Repository
from tradebook.db.memory import InMemoryRepository, MemoryStore
from tradebook.db.store import DataStore, SQLiteRepository

__all__ = [
    "BulkUpdateResult",
    "DataStore",
    "InMemoryRepository",
    "MemoryStore",
    "Repository",
    "SQLiteRepository",
]
