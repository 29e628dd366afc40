"""
Liquidation Conformance Tests

INVARIANT: After any successful liquidate(liquidator, asset, debtor, d):

    health_factor(debtor) after > health_factor(debtor) before
    debt(debtor) after = debt(debtor) before - d
    collateral seized = token_amount(d) + token_amount(d) * bonus // precision

A liquidation that cannot satisfy these fails with no state change.
"""

import pytest
from hypothesis import given, settings, note
from hypothesis import strategies as st

from dsc_engine import (
    HealthFactorOk, HealthFactorNotImproved, HealthFactorBreached, BalanceUnderflow,
    to_fixed,
)
from tests.fakes import build_system


def deploy_crashed(minted: int, crash_price: int):
    """alice: 10 WETH / minted DSC. bob: 100 WBTC / 20000 DSC. ETH then moves to crash_price."""
    chain, engine, feeds = build_system(["alice", "bob"])
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", to_fixed(10), to_fixed(minted))
    engine.deposit_collateral_and_mint_dsc("bob", "WBTC", to_fixed(100), to_fixed(20000))
    feeds["WETH"].update_answer(crash_price * 10 ** 8, chain.current_time)
    return engine


def state(engine):
    return (
        engine.get_account_information("alice").total_dsc_minted,
        engine.get_collateral_balance_of_user("alice", "WETH"),
        engine.get_collateral_token("WETH").balance_of("bob"),
        engine.get_dsc().balance_of("bob"),
    )


class TestLiquidationProperties:

    @given(
        minted=st.integers(min_value=1000, max_value=10000),
        crash_price=st.integers(min_value=50, max_value=2000),
        cover_percent=st.integers(min_value=1, max_value=100),
    )
    @settings(max_examples=150, deadline=None)
    def test_successful_liquidation_improves_debtor(self, minted, crash_price, cover_percent):
        """
        PROPERTY: Success implies strict improvement and an exact debt decrease;
        failure implies no change.
        """
        engine = deploy_crashed(minted, crash_price)
        debt_to_cover = to_fixed(minted) * cover_percent // 100
        before = state(engine)
        starting = engine.get_health_factor("alice")
        token_amount = engine.get_token_amount_from_usd("WETH", debt_to_cover)

        try:
            result = engine.liquidate("bob", "WETH", "alice", debt_to_cover)
        except (HealthFactorOk, HealthFactorNotImproved, HealthFactorBreached, BalanceUnderflow) as exc:
            note(f"rejected: {type(exc).__name__}")
            assert state(engine) == before
            if isinstance(exc, HealthFactorOk):
                assert starting >= engine.get_min_health_factor()
        else:
            assert starting < engine.get_min_health_factor()
            assert engine.get_health_factor("alice") > starting
            assert result.ending_health_factor > result.starting_health_factor
            debt, collateral, bob_weth, _ = state(engine)
            assert debt == before[0] - debt_to_cover
            seized = token_amount + token_amount * engine.get_liquidation_bonus() // engine.get_liquidation_precision()
            assert result.collateral_seized == seized
            assert collateral == before[1] - seized
            assert bob_weth == before[2] + seized

    @given(crash_price=st.integers(min_value=1001, max_value=4000))
    @settings(max_examples=50, deadline=None)
    def test_healthy_debtor_never_liquidated(self, crash_price):
        """
        PROPERTY: A debtor at or above the minimum cannot be liquidated.
        """
        # 10 WETH / 5000 DSC stays healthy at any price >= 1000.
        engine = deploy_crashed(5000, crash_price)
        before = state(engine)
        with pytest.raises(HealthFactorOk):
            engine.liquidate("bob", "WETH", "alice", to_fixed(100))
        assert state(engine) == before
