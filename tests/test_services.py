"""Tests for the holding, position and order services.

**Feature: tradebook**
"""

import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradebook.db.memory import MemoryStore
from tradebook.db.store import DataStore
from tradebook.errors import ConflictError, InvalidTransition, NotFoundError, ValidationError
from tradebook.market.simulated import SimulatedPriceSource
from tradebook.services import HoldingService, OrderService, PositionService


class FakeClock:
    """Deterministic clock advanced by hand."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        yield MemoryStore()
        return
    with tempfile.TemporaryDirectory() as tmpdir:
        yield DataStore(Path(tmpdir) / "test.db")


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 4, 9, 15))


class TestHoldingService:
    """Holdings carry their P&L and roll up into portfolio metrics."""

    def test_add_and_price_update(self, store):
        service = HoldingService(store.holdings)
        holding = service.add_holding("user-1", "infy", 10, 100.0, 120.0)
        assert holding["symbol"] == "INFY"
        assert holding["day_change"] == 200.0
        assert holding["day_change_percentage"] == 20.0
        assert holding["profit_loss"] == "200.00"

        updated = service.update_holding("user-1", holding["id"], current_price=90.0)
        assert updated["day_change"] == -100.0
        assert updated["day_change_percentage"] == -10.0
        assert updated["quantity"] == 10

    def test_duplicate_symbol_conflicts(self, store):
        service = HoldingService(store.holdings)
        service.add_holding("user-1", "INFY", 10, 100.0, 120.0)
        with pytest.raises(ConflictError):
            service.add_holding("user-1", "INFY", 5, 90.0, 120.0)

    @pytest.mark.parametrize(
        "quantity,average_price,current_price,field",
        [
            (0, 100.0, 100.0, "quantity"),
            (10, 0.0, 100.0, "average_price"),
            (10, 100.0, -1.0, "current_price"),
        ],
    )
    def test_invalid_values(self, store, quantity, average_price, current_price, field):
        service = HoldingService(store.holdings)
        with pytest.raises(ValidationError) as exc_info:
            service.add_holding("user-1", "INFY", quantity, average_price, current_price)
        assert field in exc_info.value.errors

    def test_list_metrics(self, store):
        service = HoldingService(store.holdings)
        service.add_holding("user-1", "TCS", 10, 50.0, 40.0)
        service.add_holding("user-1", "INFY", 10, 100.0, 120.0)
        service.add_holding("user-2", "WIPRO", 100, 10.0, 10.0)

        result = service.list_holdings("user-1")

        assert [h["symbol"] for h in result["holdings"]] == ["INFY", "TCS"]
        assert result["metrics"] == {
            "total_investment": "1500.00",
            "current_value": "1600.00",
            "todays_pnl": "100.00",
            "total_pnl": "100.00",
            "total_pnl_percentage": "6.67",
        }

    def test_empty_list(self, store):
        result = HoldingService(store.holdings).list_holdings("user-1")
        assert result["holdings"] == []
        assert result["metrics"]["total_pnl_percentage"] is None

    def test_bulk_update_prices(self, store):
        service = HoldingService(store.holdings)
        first = service.add_holding("user-1", "INFY", 10, 100.0, 100.0)
        second = service.add_holding("user-1", "TCS", 10, 100.0, 100.0)

        result = service.bulk_update_prices("user-1", [
            {"id": first["id"], "price": 120.0},
            {"id": 4242, "price": 10.0},
            {"id": second["id"], "price": -5},
        ])

        assert result["updated"] == [first["id"]]
        assert sorted(result["errors"]) == sorted([
            "Holding not found: 4242",
            f"Invalid update data for holding: {second['id']}",
        ])
        assert service.get_holding("user-1", first["id"])["day_change"] == 200.0

    def test_refresh_prices(self, store):
        service = HoldingService(store.holdings)
        service.add_holding("user-1", "INFY", 10, 1500.0, 1500.0)
        result = service.refresh_prices("user-1", SimulatedPriceSource(seed=1))
        assert len(result["updated"]) == 1
        assert result["errors"] == []

    def test_delete(self, store):
        service = HoldingService(store.holdings)
        holding = service.add_holding("user-1", "INFY", 10, 100.0, 100.0)
        with pytest.raises(NotFoundError):
            service.delete_holding("user-2", holding["id"])
        assert service.delete_holding("user-1", holding["id"])["symbol"] == "INFY"
        with pytest.raises(NotFoundError):
            service.get_holding("user-1", holding["id"])


class TestPositionService:
    """Positions track fills and close through square-off."""

    def test_bulk_update_three_with_one_bad_id(self, store):
        service = PositionService(store.positions)
        ids = [
            service.add_position("user-1", symbol, "MIS", 10, 100.0, 100.0)["id"]
            for symbol in ("INFY", "TCS")
        ]

        result = service.bulk_update_prices("user-1", [
            {"id": ids[0], "price": 101.0},
            {"id": 777, "price": 50.0},
            {"id": ids[1], "price": 99.0},
        ])

        assert result["updated"] == ids
        assert result["errors"] == ["Position not found: 777"]

    def test_conflict_per_symbol_and_product(self, store):
        service = PositionService(store.positions)
        service.add_position("user-1", "INFY", "MIS", 10, 100.0, 100.0)
        service.add_position("user-1", "INFY", "CNC", 10, 100.0, 100.0)
        with pytest.raises(ConflictError):
            service.add_position("user-1", "INFY", "mis", 1, 100.0, 100.0)

    def test_invalid_product(self, store):
        with pytest.raises(ValidationError):
            PositionService(store.positions).list_positions("user-1", product="FUT")

    def test_short_position_metrics(self, store):
        service = PositionService(store.positions)
        position = service.add_position("user-1", "TCS", "MIS", -10, 200.0, 190.0)
        assert position["sell_quantity"] == 10
        assert position["unrealized_pnl"] == "100.00"

        result = service.list_positions("user-1", product="MIS")
        assert result["metrics"]["total_investment"] == "2000.00"
        assert result["metrics"]["day_pnl"] == "100.00"
        assert service.list_positions("user-1", product="CNC")["positions"] == []

    def test_fills_and_square_off(self, store):
        service = PositionService(store.positions)
        position = service.add_position("user-1", "INFY", "MIS", 10, 100.0, 100.0)

        position = service.record_fill("user-1", position["id"], "buy", 10, 110.0)
        assert position["quantity"] == 20
        assert position["average_price"] == 105.0

        position = service.record_fill("user-1", position["id"], "SELL", 5, 115.0)
        assert position["quantity"] == 15
        assert position["realized_pnl"] == 50.0
        assert position["unrealized_pnl"] == "150.00"

        result = service.square_off("user-1", position["id"])
        assert result["final_pnl"] == "200.00"
        assert result["realized_pnl"] == "50.00"
        with pytest.raises(NotFoundError):
            service.get_position("user-1", position["id"])

    def test_invalid_fill(self, store):
        service = PositionService(store.positions)
        position = service.add_position("user-1", "INFY", "MIS", 10, 100.0, 100.0)
        with pytest.raises(ValidationError) as exc_info:
            service.record_fill("user-1", position["id"], "HOLD", 0, 0.0)
        assert set(exc_info.value.errors) == {"side", "quantity", "price"}

    def test_update_resets_aggregates(self, store):
        service = PositionService(store.positions)
        position = service.add_position("user-1", "INFY", "NRML", 10, 100.0, 100.0)
        updated = service.update_position("user-1", position["id"], quantity=-4)
        assert updated["buy_quantity"] == 0
        assert updated["sell_quantity"] == 4
        assert updated["net_quantity"] == -4


class TestOrderService:
    """Orders are placed PENDING and listed newest first."""

    def test_place_and_lifecycle(self, store, clock):
        service = OrderService(store.orders, clock=clock)
        order = service.place_order(
            "user-1", symbol="INFY", transaction_type="BUY", order_type="LIMIT",
            quantity=10, price=100.0,
        )
        assert order["status"] == "PENDING"
        assert order["is_modifiable"] is True

        clock.advance(minutes=2)
        modified = service.modify_order("user-1", order["id"], price=98.0)
        assert modified["order_value"] == 980.0
        assert modified["order_age"] == 120

        executed = service.execute_order("user-1", order["id"])
        assert executed["status"] == "EXECUTED"
        assert executed["average_price"] == 98.0

        with pytest.raises(InvalidTransition):
            service.cancel_order("user-1", order["id"])
        with pytest.raises(InvalidTransition):
            service.modify_order("user-1", order["id"], quantity=1)

    def test_limit_without_price(self, store):
        with pytest.raises(ValidationError):
            OrderService(store.orders).place_order(
                "user-1", symbol="INFY", transaction_type="BUY", order_type="LIMIT", quantity=1
            )

    def test_cancel_and_reject(self, store):
        service = OrderService(store.orders)
        first = service.place_order("user-1", symbol="INFY", transaction_type="BUY", quantity=1)
        second = service.place_order("user-1", symbol="TCS", transaction_type="SELL", quantity=1)
        assert service.cancel_order("user-1", first["id"])["status"] == "CANCELLED"
        rejected = service.reject_order("user-1", second["id"], "Outside circuit limits")
        assert rejected["rejection_reason"] == "Outside circuit limits"

    def test_other_owner_cannot_cancel(self, store):
        service = OrderService(store.orders)
        order = service.place_order("user-1", symbol="INFY", transaction_type="BUY", quantity=1)
        with pytest.raises(NotFoundError):
            service.cancel_order("user-2", order["id"])

    def test_list_filters_and_pagination(self, store, clock):
        service = OrderService(store.orders, clock=clock)
        for i in range(5):
            service.place_order(
                "user-1", symbol=f"S{i}", transaction_type="BUY" if i < 3 else "SELL",
                quantity=1,
            )
            clock.advance(hours=6)

        page = service.list_orders("user-1", page=1, limit=2)
        assert [o["symbol"] for o in page["orders"]] == ["S4", "S3"]
        assert page["pagination"] == {"total": 5, "page": 1, "pages": 3}

        sells = service.list_orders("user-1", transaction_type="sell")
        assert [o["symbol"] for o in sells["orders"]] == ["S4", "S3"]

        first_day = service.list_orders("user-1", on_date=date(2024, 3, 4))
        assert [o["symbol"] for o in first_day["orders"]] == ["S2", "S1", "S0"]

        assert service.list_orders("user-1", status="EXECUTED")["pagination"]["total"] == 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"status": "DONE"}, {"page": 0}, {"limit": 0}, {"limit": 1000}],
    )
    def test_invalid_queries(self, store, kwargs):
        with pytest.raises(ValidationError):
            OrderService(store.orders).list_orders("user-1", **kwargs)

    @given(count=st.integers(min_value=0, max_value=12), limit=st.integers(min_value=1, max_value=5))
    @settings(max_examples=25)
    def test_pages_cover_every_order(self, count: int, limit: int):
        service = OrderService(MemoryStore().orders)
        for i in range(count):
            service.place_order("user-1", symbol=f"S{i}", transaction_type="BUY", quantity=1)

        first = service.list_orders("user-1", limit=limit)
        seen = []
        for page in range(1, first["pagination"]["pages"] + 1):
            seen += [o["id"] for o in service.list_orders("user-1", page=page, limit=limit)["orders"]]
        assert sorted(seen) == list(range(1, count + 1))
