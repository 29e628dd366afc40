"""
tokens.py - ERC20-style tokens on top of the TokenLedger

Reference collaborators for the engine:
- ERC20Token: a collateral asset with balances, allowances and boolean
  transfer results
- StableToken: the DSC stable token; issuance and retirement are restricted
  to its owner (the engine after ownership transfer)

Every balance change is a Move executed on the shared TokenLedger. A
rejected ledger transaction surfaces as a False transfer result, never as a
partial update.
"""

from __future__ import annotations
from typing import Dict, Tuple
import logging

from .core import (
    Move, Unit, ExecuteResult, SYSTEM_WALLET,
    UNIT_TYPE_COLLATERAL, UNIT_TYPE_STABLECOIN, PRECISION_DECIMALS,
    TokenError, Unauthorized,
    build_transaction,
)
from .ledger import TokenLedger

logger = logging.getLogger(__name__)

Allowances = Dict[Tuple[str, str], int]  # (owner, spender) -> amount


class ERC20Token:
    """
    Fungible token whose balances live in a TokenLedger unit of the same symbol.

    The caller identity is explicit: `sender` for transfer, `spender` for
    transfer_from, `owner` for approve.
    """

    unit_type = UNIT_TYPE_COLLATERAL

    def __init__(self, ledger: TokenLedger, symbol: str, name: str,
                 decimals: int = PRECISION_DECIMALS):
        self.ledger = ledger
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        self.allowances: Allowances = {}
        ledger.register_unit(Unit(symbol, name, self.unit_type, decimals))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol})"

    def balance_of(self, account: str) -> int:
        return self.ledger.get_balance(account, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self.symbol)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            raise TokenError(f"Allowance cannot be negative, got {amount}")
        self.allowances[(owner, spender)] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move amount from sender to to. Returns False if sender's balance is short."""
        return self._move(sender, to, amount)

    def transfer_from(self, spender: str, source: str, dest: str, amount: int) -> bool:
        """
        Move amount from source to dest on behalf of spender.

        Spends allowance unless spender is the source itself. Returns False,
        with neither balance nor allowance touched, if either is insufficient.
        """
        if spender != source:
            allowed = self.allowance(source, spender)
            if allowed < amount:
                logger.debug("%s: allowance %s of %s for %s below %s",
                             self.symbol, allowed, source, spender, amount)
                return False
        if not self._move(source, dest, amount):
            return False
        if spender != source:
            self.allowances[(source, spender)] = allowed - amount
        return True

    def faucet(self, to: str, amount: int) -> None:
        """Issue amount out of SYSTEM_WALLET. Used to fund test and simulation accounts."""
        if not self._move(SYSTEM_WALLET, to, amount):
            raise TokenError(f"Faucet issuance of {amount} {self.symbol} rejected")

    def _move(self, source: str, dest: str, amount: int) -> bool:
        if amount <= 0:
            raise TokenError(f"Amount must be greater than zero, got {amount}")
        tx = build_transaction(self.ledger, [
            Move(amount, self.symbol, source, dest, f"{self.symbol}:{type(self).__name__}")
        ])
        return self.ledger.execute(tx) is ExecuteResult.APPLIED

    # Rollback support: ledger balances plus this token's allowances.

    def snapshot(self):
        return self.ledger.snapshot(), dict(self.allowances)

    def restore(self, snapshot) -> None:
        ledger_snapshot, allowances = snapshot
        self.ledger.restore(ledger_snapshot)
        self.allowances = dict(allowances)


class StableToken(ERC20Token):
    """
    The DSC stable token.

    Only the owner may mint and burn. Burning retires tokens held by the
    owner itself, so the engine first pulls DSC from the payer, then burns.
    """

    unit_type = UNIT_TYPE_STABLECOIN

    def __init__(self, ledger: TokenLedger, owner: str,
                 symbol: str = "DSC", name: str = "Decentralized Stable Coin"):
        super().__init__(ledger, symbol, name)
        self.owner = owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        if not new_owner:
            raise TokenError("New owner cannot be empty")
        logger.info("%s ownership %s -> %s", self.symbol, self.owner, new_owner)
        self.owner = new_owner

    def mint(self, caller: str, to: str, amount: int) -> bool:
        self._only_owner(caller)
        if not to:
            raise TokenError("Cannot mint to an empty address")
        if amount <= 0:
            raise TokenError(f"Mint amount must be greater than zero, got {amount}")
        return self._move(SYSTEM_WALLET, to, amount)

    def burn(self, caller: str, amount: int) -> None:
        self._only_owner(caller)
        if amount <= 0:
            raise TokenError(f"Burn amount must be greater than zero, got {amount}")
        balance = self.balance_of(caller)
        if balance < amount:
            raise TokenError(f"Burn amount {amount} exceeds balance {balance}")
        if not self._move(caller, SYSTEM_WALLET, amount):
            raise TokenError(f"Burn of {amount} {self.symbol} rejected")

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller} is not the owner of {self.symbol}")
