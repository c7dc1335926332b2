"""SQLite data store for TradeBook."""

import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from tradebook.db.base import Repository, T, split_filter_key
from tradebook.errors import ConflictError, InternalError, NotFoundError
from tradebook.models import Holding, Order, Position, Watchlist

logger = logging.getLogger(__name__)

SQL_OPERATORS = {None: "=", "gte": ">=", "gt": ">", "lte": "<=", "lt": "<"}


def _to_sql(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SQLiteRepository(Repository[T]):
    """Repository storing one entity type in one SQLite table.

    Columns mirror the model fields; list-valued fields are stored as
    JSON text.
    """

    def __init__(
        self,
        store: "DataStore",
        table: str,
        model: type[T],
        entity_name: str,
        json_fields: tuple[str, ...] = (),
    ):
        """Initialize the repository.

        Args:
            store: DataStore providing connections.
            table: Table name.
            model: pydantic model stored in the table.
            entity_name: Human readable entity name.
            json_fields: Fields serialized as JSON text.
        """
        super().__init__(model, entity_name)
        self._store = store
        self._table = table
        self._json_fields = json_fields

    def _to_row(self, entity: T) -> dict[str, Any]:
        row = entity.model_dump(mode="json")
        for field in self._json_fields:
            row[field] = json.dumps(row[field])
        return {key: _to_sql(value) for key, value in row.items()}

    def _from_row(self, row: sqlite3.Row) -> T:
        data = dict(row)
        for field in self._json_fields:
            data[field] = json.loads(data[field]) if data[field] else []
        return self.model.model_validate(data)

    def _where(self, owner_id: str, filters: Optional[dict[str, Any]]) -> tuple[str, list[Any]]:
        filters = self.check_filters(filters)
        clauses = ["owner_id = ?"]
        params: list[Any] = [owner_id]
        for key, value in filters.items():
            field, op = split_filter_key(key)
            if value is None and op is None:
                clauses.append(f"{field} IS NULL")
                continue
            clauses.append(f"{field} {SQL_OPERATORS[op]} ?")
            params.append(_to_sql(value))
        return " AND ".join(clauses), params

    def _execute(self, sql: str, params: list[Any]) -> tuple[Optional[int], int]:
        """Run a write statement and commit.

        Returns:
            Tuple of (lastrowid, rowcount).
        """
        conn = self._store._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            conn.commit()
            return cursor.lastrowid, cursor.rowcount
        except sqlite3.IntegrityError as e:
            logger.info("Integrity error on %s: %s", self._table, e)
            raise ConflictError(f"{self.entity_name} already exists") from e
        except sqlite3.Error as e:
            logger.error("SQLite error on %s: %s", self._table, e)
            raise InternalError() from e
        finally:
            conn.close()

    def _query(self, sql: str, params: list[Any]) -> list[sqlite3.Row]:
        conn = self._store._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error("SQLite error on %s: %s", self._table, e)
            raise InternalError() from e
        finally:
            conn.close()

    def find_one(self, owner_id: str, filters: dict[str, Any]) -> Optional[T]:
        where, params = self._where(owner_id, filters)
        rows = self._query(
            f"SELECT * FROM {self._table} WHERE {where} ORDER BY id LIMIT 1",
            params,
        )
        return self._from_row(rows[0]) if rows else None

    def find_many(
        self,
        owner_id: str,
        filters: Optional[dict[str, Any]] = None,
        sort: Optional[list[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[T]:
        where, params = self._where(owner_id, filters)
        order_by = [f"{field} {'DESC' if desc else 'ASC'}" for field, desc in self.check_sort(sort)]
        order_by.append("id ASC")
        sql = f"SELECT * FROM {self._table} WHERE {where} ORDER BY {', '.join(order_by)}"
        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params += [limit if limit is not None else -1, offset]
        return [self._from_row(row) for row in self._query(sql, params)]

    def count(self, owner_id: str, filters: Optional[dict[str, Any]] = None) -> int:
        where, params = self._where(owner_id, filters)
        rows = self._query(f"SELECT COUNT(*) AS count FROM {self._table} WHERE {where}", params)
        return rows[0]["count"]

    def save(self, entity: T) -> T:
        row = self._to_row(entity)
        row.pop("id")

        if entity.id is None:
            columns = list(row)
            lastrowid, _ = self._execute(
                f"INSERT INTO {self._table} ({', '.join(columns)}) "
                f"VALUES ({', '.join('?' for _ in columns)})",
                list(row.values()),
            )
            return entity.model_copy(update={"id": lastrowid})

        owner_id = row.pop("owner_id")
        assignments = ", ".join(f"{column} = ?" for column in row)
        _, rowcount = self._execute(
            f"UPDATE {self._table} SET {assignments} WHERE id = ? AND owner_id = ?",
            [*row.values(), entity.id, owner_id],
        )
        if rowcount == 0:
            raise NotFoundError(self.entity_name, entity.id)
        return entity

    def delete_one(self, owner_id: str, entity_id: int) -> bool:
        _, rowcount = self._execute(
            f"DELETE FROM {self._table} WHERE id = ? AND owner_id = ?",
            [entity_id, owner_id],
        )
        return rowcount > 0


class DataStore:
    """SQLite-based data store for TradeBook.

    Exposes one repository per entity type: ``holdings``, ``positions``,
    ``orders`` and ``watchlists``.
    """

    REQUIRED_TABLES = [
        "holdings",
        "positions",
        "orders",
        "watchlists",
    ]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_schema()

        self.holdings = SQLiteRepository(self, "holdings", Holding, "Holding")
        self.positions = SQLiteRepository(self, "positions", Position, "Position")
        self.orders = SQLiteRepository(self, "orders", Order, "Order", json_fields=("tags",))
        self.watchlists = SQLiteRepository(
            self, "watchlists", Watchlist, "Watchlist", json_fields=("items",)
        )

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            # Holdings table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS holdings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    exchange TEXT NOT NULL DEFAULT 'NSE',
                    quantity INTEGER NOT NULL,
                    average_price REAL NOT NULL,
                    current_price REAL NOT NULL,
                    day_change REAL NOT NULL DEFAULT 0,
                    day_change_percentage REAL NOT NULL DEFAULT 0,
                    pledged_quantity INTEGER NOT NULL DEFAULT 0,
                    collateral_quantity INTEGER NOT NULL DEFAULT 0,
                    t1_quantity INTEGER NOT NULL DEFAULT 0,
                    isin TEXT,
                    company_name TEXT,
                    sector TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(owner_id, symbol)
                )
            """)

            # Positions table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS positions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    exchange TEXT NOT NULL DEFAULT 'NSE',
                    product TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    average_price REAL NOT NULL,
                    last_traded_price REAL NOT NULL,
                    buy_quantity INTEGER NOT NULL DEFAULT 0,
                    buy_value REAL NOT NULL DEFAULT 0,
                    sell_quantity INTEGER NOT NULL DEFAULT 0,
                    sell_value REAL NOT NULL DEFAULT 0,
                    multiplier REAL NOT NULL DEFAULT 1,
                    realized_pnl REAL NOT NULL DEFAULT 0,
                    day_change REAL NOT NULL DEFAULT 0,
                    day_change_percentage REAL NOT NULL DEFAULT 0,
                    overnight INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(owner_id, symbol, product)
                )
            """)

            # Orders table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS orders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    exchange TEXT NOT NULL DEFAULT 'NSE',
                    transaction_type TEXT NOT NULL,
                    order_type TEXT NOT NULL,
                    product TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    price REAL,
                    trigger_price REAL,
                    validity TEXT NOT NULL,
                    status TEXT NOT NULL,
                    average_price REAL NOT NULL DEFAULT 0,
                    filled_quantity INTEGER NOT NULL DEFAULT 0,
                    remaining_quantity INTEGER NOT NULL DEFAULT 0,
                    order_value REAL NOT NULL DEFAULT 0,
                    rejection_reason TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    notes TEXT,
                    parent_order_id INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_orders_owner_created "
                "ON orders (owner_id, created_at)"
            )

            # Watchlists table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS watchlists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    items TEXT NOT NULL DEFAULT '[]',
                    is_default INTEGER NOT NULL DEFAULT 0,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    color TEXT,
                    icon TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(owner_id, name)
                )
            """)

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
