"""
test_collateral_ledger.py - Unit tests for CollateralLedger
"""

import pytest

from dsc_engine import (
    CollateralLedger, TokenLedger, ERC20Token,
    CollateralDeposited, CollateralRedeemed,
    ZeroAmount, UnsupportedAsset, TransferFailed, BalanceUnderflow,
)
from tests.fakes import FailingToken


@pytest.fixture
def chain():
    return TokenLedger("chain")


@pytest.fixture
def weth(chain):
    token = FailingToken(chain, "WETH", "Wrapped Ether")
    token.faucet("alice", 100)
    token.approve("alice", "vault", 100)
    return token


@pytest.fixture
def events():
    return []


@pytest.fixture
def collateral(weth, events):
    return CollateralLedger({"WETH": weth}, custodian="vault", emit=events.append)


class TestDeposit:

    def test_records_and_pulls_tokens(self, collateral, weth, events):
        collateral.deposit("alice", "WETH", 40)
        assert collateral.balance_of("alice", "WETH") == 40
        assert collateral.total_deposited("WETH") == 40
        assert weth.balance_of("vault") == 40
        assert events == [CollateralDeposited("alice", "WETH", 40)]

    def test_zero_amount(self, collateral):
        with pytest.raises(ZeroAmount):
            collateral.deposit("alice", "WETH", 0)

    def test_negative_amount(self, collateral):
        with pytest.raises(ValueError):
            collateral.deposit("alice", "WETH", -1)

    def test_unsupported_asset(self, collateral):
        with pytest.raises(UnsupportedAsset) as exc_info:
            collateral.deposit("alice", "DOGE", 1)
        assert exc_info.value.asset == "DOGE"

    def test_failed_transfer(self, collateral, weth, events):
        weth.fail_transfer_from = True
        with pytest.raises(TransferFailed):
            collateral.deposit("alice", "WETH", 10)
        assert collateral.balance_of("alice", "WETH") == 0
        assert weth.balance_of("alice") == 100
        assert events == []

    def test_positions_include_zero_balances(self, chain, weth, events):
        wbtc = ERC20Token(chain, "WBTC", "Wrapped Bitcoin")
        collateral = CollateralLedger({"WETH": weth, "WBTC": wbtc}, "vault", events.append)
        collateral.deposit("alice", "WETH", 5)
        assert collateral.positions_of("alice") == {"WETH": 5, "WBTC": 0}


class TestWithdraw:

    def test_withdraw_to_self(self, collateral, weth, events):
        collateral.deposit("alice", "WETH", 40)
        collateral.withdraw("WETH", 15, from_user="alice", to_user="alice")
        assert collateral.balance_of("alice", "WETH") == 25
        assert weth.balance_of("alice") == 75
        assert events[-1] == CollateralRedeemed("alice", "alice", "WETH", 15)

    def test_withdraw_to_other_names_both(self, collateral, weth, events):
        collateral.deposit("alice", "WETH", 40)
        collateral.withdraw("WETH", 10, from_user="alice", to_user="bob")
        assert weth.balance_of("bob") == 10
        assert events[-1].redeemed_from == "alice"
        assert events[-1].redeemed_to == "bob"

    def test_underflow(self, collateral):
        collateral.deposit("alice", "WETH", 5)
        with pytest.raises(BalanceUnderflow):
            collateral.withdraw("WETH", 6, "alice", "alice")
        assert collateral.balance_of("alice", "WETH") == 5

    def test_failed_transfer(self, collateral, weth, events):
        collateral.deposit("alice", "WETH", 5)
        weth.fail_transfer = True
        with pytest.raises(TransferFailed):
            collateral.withdraw("WETH", 5, "alice", "alice")
        assert collateral.balance_of("alice", "WETH") == 5
        assert weth.balance_of("vault") == 5
        assert events == [CollateralDeposited("alice", "WETH", 5)]


class TestRollback:

    def test_restore(self, collateral):
        collateral.deposit("alice", "WETH", 5)
        saved = collateral.snapshot()
        collateral.deposit("alice", "WETH", 7)
        collateral.restore(saved)
        assert collateral.balance_of("alice", "WETH") == 5
