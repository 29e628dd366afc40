"""
test_oracle.py - Unit tests for PriceOracleAdapter

Covers USD valuation and its inverse at 8- and 18-decimal feeds, and the
rejection of stale, future-stamped, missing and non-positive quotes.
"""

import pytest
from datetime import datetime, timedelta

from dsc_engine import (
    PriceOracleAdapter, StaticPriceFeed, to_fixed,
    OracleStale, OracleUnavailable,
)


T0 = datetime(2025, 1, 1)


@pytest.fixture
def clock():
    return {"now": T0}


@pytest.fixture
def eth_feed():
    return StaticPriceFeed(2000 * 10 ** 8, updated_at=T0)


@pytest.fixture
def oracle(eth_feed, clock):
    return PriceOracleAdapter({"WETH": eth_feed}, clock=lambda: clock["now"])


class TestConversions:

    def test_usd_value(self, oracle):
        # 15 WETH at 2000 USD
        assert oracle.usd_value("WETH", to_fixed(15)) == to_fixed(30000)

    def test_amount_from_usd(self, oracle):
        # 100 USD at 2000 USD/WETH is 0.05 WETH
        assert oracle.amount_from_usd("WETH", to_fixed(100)) == 5 * 10 ** 16

    def test_eighteen_decimal_feed(self, clock):
        feed = StaticPriceFeed(to_fixed(2000), decimals=18, updated_at=T0)
        oracle = PriceOracleAdapter({"WETH": feed}, clock=lambda: clock["now"])
        assert oracle.scale_of("WETH") == 1
        assert oracle.usd_value("WETH", to_fixed(15)) == to_fixed(30000)

    def test_rounds_down(self, oracle):
        assert oracle.usd_value("WETH", 1) == 2000
        assert oracle.amount_from_usd("WETH", 1999) == 0

    def test_rereads_feed_every_call(self, oracle, eth_feed):
        eth_feed.update_answer(1000 * 10 ** 8, T0)
        assert oracle.usd_value("WETH", to_fixed(1)) == to_fixed(1000)

    def test_feed_with_too_many_decimals_rejected(self):
        feed = StaticPriceFeed(1, decimals=19)
        with pytest.raises(ValueError):
            PriceOracleAdapter({"WETH": feed})


class TestStaleness:

    def test_fresh_at_exact_timeout(self, oracle, clock):
        clock["now"] = T0 + timedelta(hours=3)
        assert oracle.price_of("WETH") == (2000 * 10 ** 8, T0)

    def test_stale_after_timeout(self, oracle, clock):
        clock["now"] = T0 + timedelta(hours=3, seconds=1)
        with pytest.raises(OracleStale):
            oracle.usd_value("WETH", to_fixed(1))

    def test_custom_max_age(self, eth_feed, clock):
        oracle = PriceOracleAdapter({"WETH": eth_feed}, max_age=timedelta(minutes=5),
                                    clock=lambda: clock["now"])
        clock["now"] = T0 + timedelta(minutes=6)
        with pytest.raises(OracleStale):
            oracle.price_of("WETH")

    def test_future_timestamp_rejected(self, oracle, clock):
        clock["now"] = T0 - timedelta(minutes=1)
        with pytest.raises(OracleStale, match="future"):
            oracle.price_of("WETH")

    def test_stale_quote_logged(self, oracle, clock, caplog):
        clock["now"] = T0 + timedelta(days=1)
        with caplog.at_level("WARNING", logger="dsc_engine.oracle"):
            with pytest.raises(OracleStale):
                oracle.price_of("WETH")
        assert "Stale price for WETH" in caplog.text


class TestUnavailable:

    def test_unknown_asset(self, oracle):
        with pytest.raises(OracleUnavailable):
            oracle.price_of("DOGE")

    @pytest.mark.parametrize("answer", [0, -1])
    def test_non_positive_answer(self, oracle, eth_feed, answer):
        eth_feed.update_answer(answer, T0)
        with pytest.raises(OracleUnavailable):
            oracle.amount_from_usd("WETH", to_fixed(1))
