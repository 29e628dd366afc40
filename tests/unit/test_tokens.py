"""
test_tokens.py - Unit tests for ERC20Token and StableToken
"""

import pytest

from dsc_engine import (
    TokenLedger, ERC20Token, StableToken, SYSTEM_WALLET,
    TokenError, Unauthorized,
)


@pytest.fixture
def ledger():
    return TokenLedger("tokens")


@pytest.fixture
def weth(ledger):
    token = ERC20Token(ledger, "WETH", "Wrapped Ether")
    token.faucet("alice", 100)
    return token


@pytest.fixture
def dsc(ledger):
    return StableToken(ledger, owner="engine")


class TestERC20Token:

    def test_faucet_issues_from_system(self, weth, ledger):
        assert weth.balance_of("alice") == 100
        assert weth.total_supply() == 100
        assert ledger.get_balance(SYSTEM_WALLET, "WETH") == -100

    def test_transfer(self, weth):
        assert weth.transfer("alice", "bob", 30) is True
        assert weth.balance_of("alice") == 70
        assert weth.balance_of("bob") == 30

    def test_transfer_insufficient_balance_returns_false(self, weth):
        assert weth.transfer("alice", "bob", 101) is False
        assert weth.balance_of("alice") == 100

    def test_transfer_zero_raises(self, weth):
        with pytest.raises(TokenError):
            weth.transfer("alice", "bob", 0)

    def test_transfer_from_spends_allowance(self, weth):
        weth.approve("alice", "engine", 50)
        assert weth.transfer_from("engine", "alice", "engine", 20) is True
        assert weth.allowance("alice", "engine") == 30
        assert weth.balance_of("engine") == 20

    def test_transfer_from_without_allowance_returns_false(self, weth):
        assert weth.transfer_from("engine", "alice", "engine", 1) is False
        assert weth.balance_of("alice") == 100

    def test_transfer_from_insufficient_balance_keeps_allowance(self, weth):
        weth.approve("alice", "engine", 500)
        assert weth.transfer_from("engine", "alice", "engine", 200) is False
        assert weth.allowance("alice", "engine") == 500

    def test_transfer_from_self_needs_no_allowance(self, weth):
        assert weth.transfer_from("alice", "alice", "bob", 10) is True

    def test_negative_allowance_rejected(self, weth):
        with pytest.raises(TokenError):
            weth.approve("alice", "engine", -1)

    def test_snapshot_restore_covers_allowances(self, weth):
        weth.approve("alice", "engine", 50)
        saved = weth.snapshot()
        weth.transfer_from("engine", "alice", "engine", 50)
        weth.restore(saved)
        assert weth.allowance("alice", "engine") == 50
        assert weth.balance_of("alice") == 100
        assert weth.balance_of("engine") == 0


class TestStableToken:

    def test_owner_mints(self, dsc):
        assert dsc.mint("engine", "alice", 10) is True
        assert dsc.balance_of("alice") == 10
        assert dsc.total_supply() == 10

    def test_non_owner_cannot_mint(self, dsc):
        with pytest.raises(Unauthorized):
            dsc.mint("mallory", "mallory", 10)

    def test_mint_zero_rejected(self, dsc):
        with pytest.raises(TokenError):
            dsc.mint("engine", "alice", 0)

    def test_burn_reduces_supply(self, dsc):
        dsc.mint("engine", "engine", 10)
        dsc.burn("engine", 4)
        assert dsc.total_supply() == 6

    def test_burn_beyond_balance_rejected(self, dsc):
        dsc.mint("engine", "engine", 10)
        with pytest.raises(TokenError, match="exceeds balance"):
            dsc.burn("engine", 11)

    def test_non_owner_cannot_burn(self, dsc):
        with pytest.raises(Unauthorized):
            dsc.burn("alice", 1)

    def test_transfer_ownership(self, dsc):
        dsc.transfer_ownership("engine", "new_engine")
        assert dsc.owner == "new_engine"
        with pytest.raises(Unauthorized):
            dsc.mint("engine", "alice", 1)

    def test_transfer_ownership_only_owner(self, dsc):
        with pytest.raises(Unauthorized):
            dsc.transfer_ownership("mallory", "mallory")
