"""Tests for the simulated price source.

**Feature: tradebook**
"""

from datetime import datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradebook.errors import ValidationError
from tradebook.market.simulated import INDEX_BASES, MAX_VARIATION, SimulatedPriceSource


class TestSimulatedPriceSource:
    """
    *For any* seed, quotes stay within the variation band around the
    reference price and are reproducible.
    """

    @given(seed=st.integers(min_value=0, max_value=10000))
    @settings(max_examples=50)
    def test_quote_within_band(self, seed: int):
        quote = SimulatedPriceSource(seed=seed).get_quote("infy")
        assert quote.symbol == "INFY"
        assert abs(quote.ltp - quote.close) <= quote.close * MAX_VARIATION + 0.01
        assert quote.low <= quote.ltp <= quote.high

    def test_seed_is_reproducible(self):
        first = SimulatedPriceSource(seed=11).get_quote("TCS")
        second = SimulatedPriceSource(seed=11).get_quote("TCS")
        assert first == second

    def test_unknown_symbol_gets_a_price(self):
        quote = SimulatedPriceSource(seed=5).get_quote("NEWCO")
        assert 100 * (1 - MAX_VARIATION) <= quote.ltp <= 1100 * (1 + MAX_VARIATION)

    def test_empty_symbol(self):
        with pytest.raises(ValidationError):
            SimulatedPriceSource().get_quote("  ")

    def test_indices(self):
        source = SimulatedPriceSource(clock=lambda: datetime(2024, 3, 4, 10, 0))
        levels = source.get_indices()
        assert [index.name for index in levels] == list(INDEX_BASES)
        # Minute zero means no swing.
        assert all(index.change_percent == 0 for index in levels)

    def test_search(self):
        source = SimulatedPriceSource()
        assert [info.symbol for info in source.search("bank")] == ["HDFCBANK"]
        with pytest.raises(ValidationError):
            source.search("")
