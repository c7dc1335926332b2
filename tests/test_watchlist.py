"""Property-based tests for watchlists.

**Feature: tradebook**
"""

import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradebook.core.watchlist import add_stock, has_symbol, remove_stock, reorder
from tradebook.db.memory import MemoryStore
from tradebook.db.store import DataStore
from tradebook.errors import ConflictError, DuplicateEntry, NotFoundError, SetMismatch
from tradebook.market.simulated import SimulatedPriceSource
from tradebook.models import Watchlist
from tradebook.services import WatchlistManager
from tradebook.services.watchlists import DEFAULT_SYMBOLS

symbols = st.text(
    alphabet=st.characters(whitelist_categories=("Lu",)),
    min_size=1,
    max_size=10,
)


def _watchlist(*names: str) -> Watchlist:
    watchlist = Watchlist(owner_id="user-1", name="tech")
    for name in names:
        watchlist = add_stock(watchlist, {"symbol": name})
    return watchlist


@pytest.fixture(params=["memory", "sqlite"])
def manager(request):
    """WatchlistManager over each storage backend."""
    if request.param == "memory":
        yield WatchlistManager(MemoryStore().watchlists)
        return
    with tempfile.TemporaryDirectory() as tmpdir:
        yield WatchlistManager(DataStore(Path(tmpdir) / "test.db").watchlists)


class TestWatchlistItemOperations:
    """
    *For any* watchlist, adding a present stock fails and leaves the list
    unchanged; removing keeps the order of the others.
    """

    def test_add_appends(self):
        watchlist = _watchlist("INFY", "TCS")
        assert [item.symbol for item in watchlist.items] == ["INFY", "TCS"]
        assert watchlist.items_count == 2

    def test_duplicate_add_is_rejected(self):
        watchlist = _watchlist("INFY")
        with pytest.raises(DuplicateEntry):
            add_stock(watchlist, {"symbol": "infy"})
        assert len(watchlist.items) == 1

    def test_same_symbol_on_other_exchange_is_distinct(self):
        watchlist = add_stock(_watchlist("INFY"), {"symbol": "INFY", "exchange": "BSE"})
        assert watchlist.items_count == 2

    def test_exchange_is_case_insensitive(self):
        watchlist = add_stock(_watchlist("INFY"), {"symbol": "infy", "exchange": " bse "})
        assert watchlist.items[-1].key == ("INFY", "BSE")
        assert has_symbol(watchlist, "infy", "bse")
        watchlist = remove_stock(watchlist, "infy", "bse")
        assert [item.key for item in watchlist.items] == [("INFY", "NSE")]

    def test_remove_keeps_order(self):
        watchlist = remove_stock(_watchlist("INFY", "TCS", "WIPRO"), "TCS")
        assert [item.symbol for item in watchlist.items] == ["INFY", "WIPRO"]

    def test_remove_missing_stock(self):
        with pytest.raises(NotFoundError):
            remove_stock(_watchlist("INFY"), "TCS")

    @given(names=st.lists(symbols, min_size=1, max_size=10, unique=True))
    @settings(max_examples=50)
    def test_add_then_remove(self, names: list[str]):
        watchlist = _watchlist(*names)
        for name in names:
            assert has_symbol(watchlist, name)
        for name in names:
            with pytest.raises(DuplicateEntry):
                add_stock(watchlist, {"symbol": name})
        for name in names:
            watchlist = remove_stock(watchlist, name)
            assert not has_symbol(watchlist, name)
        assert watchlist.items == []


class TestReorder:
    """
    *For any* permutation of the items, reorder adopts it; anything else is
    rejected.
    """

    @given(data=st.data(), names=st.lists(symbols, min_size=1, max_size=10, unique=True))
    @settings(max_examples=50)
    def test_permutation_is_adopted(self, data, names: list[str]):
        watchlist = _watchlist(*names)
        new_order = data.draw(st.permutations(names))
        reordered = reorder(watchlist, [(name, "NSE") for name in new_order])
        assert [item.symbol for item in reordered.items] == list(new_order)

    def test_missing_entry_is_rejected(self):
        watchlist = _watchlist("INFY", "TCS", "WIPRO")
        with pytest.raises(SetMismatch) as exc_info:
            reorder(watchlist, [("INFY", "NSE"), ("TCS", "NSE")])
        assert "WIPRO:NSE" in exc_info.value.errors["missing"]

    def test_unknown_entry_is_rejected(self):
        with pytest.raises(SetMismatch) as exc_info:
            reorder(_watchlist("INFY"), [("TCS", "NSE")])
        assert "TCS:NSE" in exc_info.value.errors["unknown"]

    def test_repeated_entry_is_rejected(self):
        with pytest.raises(SetMismatch):
            reorder(_watchlist("INFY", "TCS"), [("INFY", "NSE"), ("INFY", "NSE")])

    def test_payload_is_kept(self):
        watchlist = add_stock(_watchlist("INFY"), {"symbol": "TCS", "notes": "results soon"})
        reordered = reorder(watchlist, [{"symbol": "TCS"}, {"symbol": "INFY"}])
        assert reordered.items[0].notes == "results soon"


class TestWatchlistManager:
    """Repository-backed watchlists, over both storage backends."""

    def test_create_and_duplicate_name(self, manager: WatchlistManager):
        created = manager.create("user-1", "tech", description="IT stocks")
        assert created["name"] == "tech"
        assert created["items_count"] == 0
        with pytest.raises(ConflictError):
            manager.create("user-1", "tech")
        # Names are unique per owner only.
        assert manager.create("user-2", "tech")["owner_id"] == "user-2"

    def test_add_duplicate_leaves_list_unchanged(self, manager: WatchlistManager):
        watchlist = manager.create("user-1", "tech")
        manager.add_stock("user-1", watchlist["id"], {"symbol": "INFY"})
        with pytest.raises(DuplicateEntry):
            manager.add_stock("user-1", watchlist["id"], {"symbol": "INFY"})
        assert manager.get("user-1", watchlist["id"])["items_count"] == 1

    def test_single_default(self, manager: WatchlistManager):
        first = manager.create("user-1", "first", is_default=True)
        second = manager.create("user-1", "second", is_default=True)
        other_owner = manager.create("user-2", "mine", is_default=True)

        defaults = [w for w in manager.list("user-1") if w["is_default"]]
        assert [w["id"] for w in defaults] == [second["id"]]
        assert manager.get("user-2", other_owner["id"])["is_default"] is True

        manager.set_default("user-1", first["id"])
        assert manager.get_default("user-1")["id"] == first["id"]
        assert manager.get("user-1", second["id"])["is_default"] is False

    def test_add_to_default_creates_it(self, manager: WatchlistManager):
        assert manager.get_default("user-1") is None
        watchlist = manager.add_to_default("user-1", {"symbol": "SBIN"})
        assert watchlist["name"] == "Default"
        assert watchlist["is_default"] is True
        assert [item["symbol"] for item in watchlist["items"]] == ["SBIN"]

        watchlist = manager.remove_from_default("user-1", "SBIN")
        assert watchlist["items"] == []

    def test_initialize_default(self, manager: WatchlistManager):
        watchlist = manager.initialize_default("user-1")
        assert [item["symbol"] for item in watchlist["items"]] == DEFAULT_SYMBOLS
        with pytest.raises(ConflictError):
            manager.initialize_default("user-1")

    def test_add_to_default_reuses_list_named_default(self, manager: WatchlistManager):
        first = manager.add_to_default("user-1", {"symbol": "INFY"})
        tech = manager.create("user-1", "Tech")
        manager.set_default("user-1", tech["id"])
        manager.delete("user-1", tech["id"])
        assert manager.get_default("user-1") is None

        watchlist = manager.add_to_default("user-1", {"symbol": "TCS"})
        assert watchlist["id"] == first["id"]
        assert watchlist["is_default"] is True
        assert [item["symbol"] for item in watchlist["items"]] == ["INFY", "TCS"]
        assert len(manager.list("user-1")) == 1

    def test_initialize_default_flags_list_named_default(self, manager: WatchlistManager):
        existing = manager.create("user-1", "Default")
        manager.add_stock("user-1", existing["id"], {"symbol": "TCS"})

        watchlist = manager.initialize_default("user-1")
        assert watchlist["id"] == existing["id"]
        assert watchlist["is_default"] is True
        symbols = [item["symbol"] for item in watchlist["items"]]
        assert symbols[0] == "TCS"
        assert sorted(symbols) == sorted(DEFAULT_SYMBOLS)

    def test_reorder_persists(self, manager: WatchlistManager):
        watchlist = manager.initialize_default("user-1")
        new_order = list(reversed(DEFAULT_SYMBOLS))
        manager.reorder("user-1", watchlist["id"], [(s, "NSE") for s in new_order])
        stored = manager.get("user-1", watchlist["id"])
        assert [item["symbol"] for item in stored["items"]] == new_order

    def test_other_owner_sees_not_found(self, manager: WatchlistManager):
        watchlist = manager.create("user-1", "private")
        with pytest.raises(NotFoundError):
            manager.get("user-2", watchlist["id"])
        with pytest.raises(NotFoundError):
            manager.delete("user-2", watchlist["id"])
        assert manager.delete("user-1", watchlist["id"])["name"] == "private"

    def test_refresh_prices(self, manager: WatchlistManager):
        watchlist = manager.initialize_default("user-1")
        refreshed = manager.refresh_prices(
            "user-1", watchlist["id"], SimulatedPriceSource(seed=7)
        )
        assert all(item["last_price"] > 0 for item in refreshed["items"])
