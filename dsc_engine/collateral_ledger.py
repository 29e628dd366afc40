"""
collateral_ledger.py - Per-user, per-asset collateral bookkeeping

Owns the (user, asset) -> deposited amount mapping and performs the matching
token movements into and out of custody. Each operation follows
checks -> effects -> interaction. A failed interaction undoes the effect
and emits nothing; the notification goes out once the tokens have moved.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Callable, Dict, Mapping, Tuple
import logging

from .core import (
    FungibleAsset, Notification,
    CollateralDeposited, CollateralRedeemed,
    ZeroAmount, UnsupportedAsset, TransferFailed, BalanceUnderflow,
)

logger = logging.getLogger(__name__)

Deposits = Dict[Tuple[str, str], int]  # (user, asset) -> amount


class CollateralLedger:
    """
    Collateral deposits held in custody by `custodian`.

    Args:
        tokens: asset -> token collaborator for every registered asset
        custodian: Wallet that holds deposited collateral (the engine's address)
        emit: Receives CollateralDeposited / CollateralRedeemed notifications
    """

    def __init__(
        self,
        tokens: Mapping[str, FungibleAsset],
        custodian: str,
        emit: Callable[[Notification], None],
    ):
        self._tokens = dict(tokens)
        self.custodian = custodian
        self._emit = emit
        self._deposits: Deposits = defaultdict(int)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def balance_of(self, user: str, asset: str) -> int:
        return self._deposits.get((user, asset), 0)

    def positions_of(self, user: str) -> Dict[str, int]:
        """Deposited amount of every registered asset for user (zeros included)."""
        return {asset: self.balance_of(user, asset) for asset in self._tokens}

    def total_deposited(self, asset: str) -> int:
        return sum(amount for (_, a), amount in self._deposits.items() if a == asset)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def deposit(self, user: str, asset: str, amount: int) -> None:
        """
        Record a deposit and pull the tokens into custody.

        Raises:
            ZeroAmount: amount == 0
            UnsupportedAsset: asset not registered
            TransferFailed: token refused the transfer
        """
        token = self._check(asset, amount)

        self._deposits[(user, asset)] += amount
        try:
            if not token.transfer_from(self.custodian, user, self.custodian, amount):
                raise TransferFailed(f"Deposit of {amount} {asset} from {user} failed")
        except BaseException:
            self._deposits[(user, asset)] -= amount
            raise

        self._emit(CollateralDeposited(user, asset, amount))
        logger.debug("Deposited %s %s for %s", amount, asset, user)

    def withdraw(self, asset: str, amount: int, from_user: str, to_user: str) -> None:
        """
        Debit from_user's position and send the tokens to to_user.

        from_user and to_user differ during liquidation (debtor -> liquidator).

        Raises:
            ZeroAmount: amount == 0
            UnsupportedAsset: asset not registered
            BalanceUnderflow: amount exceeds from_user's recorded deposit
            TransferFailed: token refused the transfer
        """
        token = self._check(asset, amount)

        balance = self.balance_of(from_user, asset)
        if amount > balance:
            raise BalanceUnderflow(f"collateral {asset} of {from_user}", balance, amount)
        self._deposits[(from_user, asset)] = balance - amount
        try:
            if not token.transfer(self.custodian, to_user, amount):
                raise TransferFailed(f"Transfer of {amount} {asset} to {to_user} failed")
        except BaseException:
            self._deposits[(from_user, asset)] += amount
            raise

        self._emit(CollateralRedeemed(from_user, to_user, asset, amount))
        logger.debug("Withdrew %s %s from %s to %s", amount, asset, from_user, to_user)

    def _check(self, asset: str, amount: int) -> FungibleAsset:
        if amount == 0:
            raise ZeroAmount("Collateral amount must be greater than zero")
        if amount < 0:
            raise ValueError(f"Collateral amount cannot be negative, got {amount}")
        token = self._tokens.get(asset)
        if token is None:
            raise UnsupportedAsset(asset)
        return token

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def snapshot(self) -> Deposits:
        return dict(self._deposits)

    def restore(self, snapshot: Deposits) -> None:
        self._deposits = defaultdict(int, snapshot)
