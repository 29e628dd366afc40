"""
debt_ledger.py - Per-user DSC debt bookkeeping

Owns the user -> minted amount mapping and drives issuance and retirement
on the stable token collaborator. A failed token call leaves the recorded
debt as it was.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, List
import logging

from .core import (
    MintableBurnable,
    ZeroAmount, MintFailed, TransferFailed, BalanceUnderflow,
)

logger = logging.getLogger(__name__)


class DebtLedger:
    """
    DSC minted per user. A debt can never go negative.

    Args:
        dsc: The stable token; custodian must be its owner
        custodian: Wallet that mints and burns (the engine's address)
    """

    def __init__(self, dsc: MintableBurnable, custodian: str):
        self.dsc = dsc
        self.custodian = custodian
        self._minted: Dict[str, int] = defaultdict(int)

    def minted_by(self, user: str) -> int:
        return self._minted.get(user, 0)

    def total_minted(self) -> int:
        return sum(self._minted.values())

    def accounts(self) -> List[str]:
        """Users with outstanding debt, sorted."""
        return sorted(user for user, amount in self._minted.items() if amount > 0)

    def mint(self, user: str, amount: int) -> None:
        """
        Record new debt and issue the DSC to user.

        Raises:
            ZeroAmount: amount == 0
            MintFailed: the token reported failure
        """
        self._check(amount)

        self._minted[user] += amount
        try:
            if not self.dsc.mint(self.custodian, user, amount):
                raise MintFailed(f"Minting {amount} DSC to {user} failed")
        except BaseException:
            self._minted[user] -= amount
            raise
        logger.debug("Minted %s DSC to %s", amount, user)

    def burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        """
        Reduce on_behalf_of's debt, collect the DSC from payer and retire it.

        Raises:
            ZeroAmount: amount == 0
            BalanceUnderflow: amount exceeds the recorded debt
            TransferFailed: collecting from payer failed
        """
        self._check(amount)

        debt = self.minted_by(on_behalf_of)
        if amount > debt:
            raise BalanceUnderflow(f"debt of {on_behalf_of}", debt, amount)
        self._minted[on_behalf_of] = debt - amount
        try:
            if not self.dsc.transfer_from(self.custodian, payer, self.custodian, amount):
                raise TransferFailed(f"Collecting {amount} DSC from {payer} failed")
        except BaseException:
            self._minted[on_behalf_of] += amount
            raise

        try:
            self.dsc.burn(self.custodian, amount)
        except BaseException:
            # Collected but not retired: hand the DSC back to payer.
            self._minted[on_behalf_of] += amount
            self.dsc.transfer(self.custodian, payer, amount)
            raise
        logger.debug("Burned %s DSC for %s paid by %s", amount, on_behalf_of, payer)

    @staticmethod
    def _check(amount: int) -> None:
        if amount == 0:
            raise ZeroAmount("DSC amount must be greater than zero")
        if amount < 0:
            raise ValueError(f"DSC amount cannot be negative, got {amount}")

    def snapshot(self) -> Dict[str, int]:
        return dict(self._minted)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._minted = defaultdict(int, snapshot)
