"""
conftest.py - Shared pytest fixtures for DSC engine tests

Provides common fixtures used across unit, functional and conformance tests:
- A token ledger ("chain") with WETH, WBTC and DSC registered
- Static price feeds at 2000 USD/WETH and 1000 USD/WBTC
- A deployed engine owning the DSC token
- Funded users with approvals in place
"""

import pytest

from dsc_engine import TokenLedger, ERC20Token, StaticPriceFeed, to_fixed

from tests.fakes import (
    START, ETH_USD, BTC_USD, STARTING_BALANCE, AMOUNT_COLLATERAL, AMOUNT_TO_MINT,
    deploy, fund,
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    return TokenLedger("chain", initial_time=START)


@pytest.fixture
def weth(chain):
    return ERC20Token(chain, "WETH", "Wrapped Ether")


@pytest.fixture
def wbtc(chain):
    return ERC20Token(chain, "WBTC", "Wrapped Bitcoin")


@pytest.fixture
def eth_feed(chain):
    return StaticPriceFeed(ETH_USD, updated_at=chain.current_time, description="ETH / USD")


@pytest.fixture
def btc_feed(chain):
    return StaticPriceFeed(BTC_USD, updated_at=chain.current_time, description="BTC / USD")


@pytest.fixture
def deployed(chain, weth, wbtc, eth_feed, btc_feed):
    return deploy(chain, [weth, wbtc], [eth_feed, btc_feed])


@pytest.fixture
def engine(deployed):
    return deployed[0]


@pytest.fixture
def dsc(deployed):
    return deployed[1]


@pytest.fixture
def alice(engine):
    """A user holding STARTING_BALANCE WETH and WBTC, engine approved."""
    fund(engine, "alice", "WETH", STARTING_BALANCE)
    fund(engine, "alice", "WBTC", STARTING_BALANCE)
    return "alice"


@pytest.fixture
def liquidator(engine):
    fund(engine, "liquidator", "WETH", to_fixed(1000))
    return "liquidator"


@pytest.fixture
def deposited(engine, alice):
    """alice has AMOUNT_COLLATERAL WETH deposited and no debt."""
    engine.deposit_collateral(alice, "WETH", AMOUNT_COLLATERAL)
    return alice


@pytest.fixture
def minted(engine, alice):
    """alice has AMOUNT_COLLATERAL WETH deposited and AMOUNT_TO_MINT DSC minted."""
    engine.deposit_collateral_and_mint_dsc(alice, "WETH", AMOUNT_COLLATERAL, AMOUNT_TO_MINT)
    return alice
