"""Property-based tests for the repositories.

**Feature: tradebook**
"""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradebook.db.memory import MemoryStore
from tradebook.db.store import DataStore
from tradebook.errors import ConflictError, NotFoundError, ValidationError
from tradebook.models import Holding, Order, Position


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Each storage backend behind the same repositories."""
    if request.param == "memory":
        yield MemoryStore()
        return
    with tempfile.TemporaryDirectory() as tmpdir:
        yield DataStore(Path(tmpdir) / "test.db")


def _position(owner_id: str, symbol: str, product: str = "MIS", **fields) -> Position:
    data = {
        "owner_id": owner_id,
        "symbol": symbol,
        "product": product,
        "quantity": 10,
        "average_price": 100.0,
        "last_traded_price": 100.0,
        "buy_quantity": 10,
        "buy_value": 1000.0,
    }
    data.update(fields)
    return Position(**data)


class TestDatabaseSchemaCompleteness:
    """
    *For any* fresh database, all required tables exist.
    """

    def test_schema_completeness(self, temp_db: DataStore):
        tables = temp_db.get_tables()
        for table in DataStore.REQUIRED_TABLES:
            assert table in tables, f"Required table '{table}' is missing"

    @given(st.integers(min_value=1, max_value=5))
    @settings(max_examples=10)
    def test_schema_completeness_multiple_instances(self, num_instances: int):
        with tempfile.TemporaryDirectory() as tmpdir:
            for i in range(num_instances):
                store = DataStore(Path(tmpdir) / f"test_{i}.db")
                tables = store.get_tables()
                for table in DataStore.REQUIRED_TABLES:
                    assert table in tables, f"Required table '{table}' missing in instance {i}"

    def test_reopening_keeps_data(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "test.db"
            DataStore(db_path).positions.save(_position("user-1", "INFY"))
            reopened = DataStore(db_path)
            assert reopened.get_stats()["positions"] == 1


class TestOwnerScoping:
    """
    *For any* two owners, one never reads, updates or deletes the other's rows.
    """

    def test_find_is_owner_scoped(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        assert store.positions.find_one("user-1", {"id": saved.id}) == saved
        assert store.positions.find_one("user-2", {"id": saved.id}) is None
        assert store.positions.find_many("user-2") == []

    def test_owner_filter_cannot_be_overridden(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        assert store.positions.find_one("user-2", {"id": saved.id, "owner_id": "user-1"}) is None

    def test_get_raises_not_found(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        with pytest.raises(NotFoundError):
            store.positions.get("user-2", saved.id)

    def test_delete_is_owner_scoped(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        assert store.positions.delete_one("user-2", saved.id) is False
        assert store.positions.delete_one("user-1", saved.id) is True
        assert store.positions.delete_one("user-1", saved.id) is False

    def test_save_cannot_take_over_a_row(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        with pytest.raises(NotFoundError):
            store.positions.save(saved.model_copy(update={"owner_id": "user-2"}))

    @given(owners=st.lists(st.sampled_from(["a", "b", "c"]), min_size=1, max_size=15))
    @settings(max_examples=25)
    def test_counts_per_owner(self, owners: list[str]):
        memory = MemoryStore()
        for i, owner in enumerate(owners):
            memory.orders.save(Order(
                owner_id=owner, symbol=f"S{i}", transaction_type="BUY", quantity=1
            ))
        for owner in set(owners):
            assert memory.orders.count(owner) == owners.count(owner)


class TestUniqueness:
    """Per-owner uniqueness of holdings, positions and watchlist names."""

    def test_duplicate_position_conflicts(self, store):
        store.positions.save(_position("user-1", "INFY", "MIS"))
        with pytest.raises(ConflictError):
            store.positions.save(_position("user-1", "INFY", "MIS"))
        store.positions.save(_position("user-1", "INFY", "CNC"))
        store.positions.save(_position("user-2", "INFY", "MIS"))
        assert store.positions.count("user-1") == 2

    def test_duplicate_holding_conflicts(self, store):
        holding = Holding(
            owner_id="user-1", symbol="TCS", quantity=1, average_price=10, current_price=10
        )
        store.holdings.save(holding)
        with pytest.raises(ConflictError):
            store.holdings.save(holding)


class TestQueries:
    """Filters, sorting and pagination behave alike on both backends."""

    def test_range_filters_and_sort(self, store):
        start = datetime(2024, 1, 1, 9, 30)
        for i in range(5):
            store.orders.save(Order(
                owner_id="user-1",
                symbol=f"S{i}",
                transaction_type="BUY" if i % 2 else "SELL",
                quantity=i + 1,
                created_at=start + timedelta(hours=i),
                updated_at=start + timedelta(hours=i),
            ))

        newest_first = store.orders.find_many("user-1", sort=["-created_at"])
        assert [o.symbol for o in newest_first] == ["S4", "S3", "S2", "S1", "S0"]

        window = store.orders.find_many(
            "user-1",
            {
                "created_at__gte": start + timedelta(hours=1),
                "created_at__lt": start + timedelta(hours=3),
            },
            sort=["created_at"],
        )
        assert [o.symbol for o in window] == ["S1", "S2"]

        page = store.orders.find_many("user-1", sort=["-created_at"], limit=2, offset=2)
        assert [o.symbol for o in page] == ["S2", "S1"]

        assert store.orders.count("user-1", {"transaction_type": "BUY"}) == 2

    def test_unknown_filter_field(self, store):
        with pytest.raises(ValidationError):
            store.orders.find_many("user-1", {"no_such_field": 1})

    def test_list_fields_round_trip(self, store):
        saved = store.orders.save(Order(
            owner_id="user-1", symbol="INFY", transaction_type="BUY", quantity=1,
            tags=["swing", "earnings"],
        ))
        assert store.orders.get("user-1", saved.id).tags == ["swing", "earnings"]


class TestBulkUpdate:
    """
    *For any* batch, every item succeeds or fails on its own and failures
    are reported per item.
    """

    def test_one_bad_id_of_three(self, store):
        ids = [store.positions.save(_position("user-1", s)).id for s in ("INFY", "TCS")]
        updates = [(ids[0], {"last_traded_price": 110.0}), (9999, {"last_traded_price": 1.0}),
                   (ids[1], {"last_traded_price": 90.0})]

        result = store.positions.bulk_update("user-1", updates)

        assert result.updated == ids
        assert result.errors == ["Position not found: 9999"]
        assert store.positions.get("user-1", ids[0]).last_traded_price == 110.0
        assert store.positions.get("user-1", ids[1]).last_traded_price == 90.0

    def test_malformed_items(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        result = store.positions.bulk_update(
            "user-1",
            [("x", {"quantity": 1}), (saved.id, {}), (saved.id, {"owner_id": "user-2"})],
        )
        assert result.updated == []
        assert len(result.errors) == 3
        assert result.errors[0] == "Invalid update data for position: x"
        assert store.positions.get("user-1", saved.id).owner_id == "user-1"

    def test_other_owner_ids_are_not_found(self, store):
        saved = store.positions.save(_position("user-1", "INFY"))
        result = store.positions.bulk_update("user-2", [(saved.id, {"quantity": 5})])
        assert result.as_dict() == {"updated": [], "errors": [f"Position not found: {saved.id}"]}

    def test_conflicting_update_is_reported(self, store):
        store.positions.save(_position("user-1", "INFY", "MIS"))
        other = store.positions.save(_position("user-1", "INFY", "CNC"))
        result = store.positions.bulk_update("user-1", [(other.id, {"product": "MIS"})])
        assert result.updated == []
        assert len(result.errors) == 1
        assert store.positions.get("user-1", other.id).product == "CNC"
