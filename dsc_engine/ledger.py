"""
ledger.py - Double-Entry Token Ledger

The TokenLedger is the in-process stand-in for the chain the engine talks to:
it holds every wallet's balance of every registered unit (collateral tokens
and the stable token) and is the only place those balances change.

Key responsibilities:
    - Executes transactions atomically (all moves succeed or none are applied)
    - Issuance and retirement go through SYSTEM_WALLET, so the sum of all
      balances of a unit, system wallet included, is always zero
    - Tracks logical time (advance_time moves forward only)
    - Provides snapshot/restore so callers can roll back a unit of work
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple
import logging

from .core import (
    Move, Transaction, Unit, PendingTransaction, ExecuteResult,
    SYSTEM_WALLET,
    LedgerError, UnitNotRegistered,
)

logger = logging.getLogger(__name__)


class TokenLedger:
    """
    Double-entry ledger of fungible units with full validation and audit trail.

    Wallets are implicit: any non-empty identifier can hold a balance.
    Balances are non-negative ints, except for SYSTEM_WALLET which carries
    the negative of each unit's circulating supply.

    Thread Safety:
        Not thread-safe. Callers serialize access (the engine does).

    Example:
        chain = TokenLedger("chain")
        chain.register_unit(Unit("WETH", "Wrapped Ether", UNIT_TYPE_COLLATERAL))
        tx = build_transaction(chain, [Move(10, "WETH", SYSTEM_WALLET, "alice", "faucet")])
        chain.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting logical time (default: 2025-01-01)
            verbose: Log every applied transaction at INFO instead of DEBUG
        """
        self.name = name
        self.units: Dict[str, Unit] = {}
        self.balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or datetime(2025, 1, 1)
        self.verbose = verbose
        self._next_sequence: int = 0

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a unit in a wallet (0 if never credited).

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        wallet = self.balances.get(wallet_id)
        if wallet is None:
            return 0
        return wallet.get(unit_symbol, 0)

    def get_positions(self, unit_symbol: str) -> Dict[str, int]:
        """All non-zero holdings of a unit, system wallet excluded."""
        return {
            wallet: bals[unit_symbol]
            for wallet, bals in self.balances.items()
            if wallet != SYSTEM_WALLET and bals.get(unit_symbol, 0) != 0
        }

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    def list_wallets(self) -> Set[str]:
        return {w for w in self.balances if w != SYSTEM_WALLET}

    def total_supply(self, unit_symbol: str) -> int:
        """
        Circulating supply of a unit: the sum over every wallet except SYSTEM_WALLET.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            bals.get(unit_symbol, 0)
            for wallet, bals in sorted(self.balances.items())
            if wallet != SYSTEM_WALLET
        )

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that conservation holds for all units.

        Every unit enters circulation from SYSTEM_WALLET and leaves back into
        it, so the sum of all balances including the system wallet is zero.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Circulating supply for each unit
            - 'discrepancies': List[Dict] - unit and net sum of each violation
        """
        supplies = {}
        discrepancies = []
        for unit_symbol in self.units:
            circulating = self.total_supply(unit_symbol)
            supplies[unit_symbol] = circulating
            net = circulating + self.balances[SYSTEM_WALLET].get(unit_symbol, 0)
            if net != 0:
                discrepancies.append({'unit': unit_symbol, 'net': net})
        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        logger.debug("Registered unit %s (%s) [%s]", unit.symbol, unit.name, unit.unit_type)

    # ========================================================================
    # TRANSACTION EXECUTION
    # ========================================================================

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves are validated against the post-transaction balances before
        any of them is applied:
        - Unit registration
        - Non-negative balances for every wallet but SYSTEM_WALLET
        - Timestamp not in the future

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed (nothing applied)
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            logger.debug("%s REJECTED: %s", self.name, reason)
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=pending.moves,
            exec_id=f"exec:{self.name}:{sequence:012d}",
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )
        self._execute_moves(tx.moves)
        self.transaction_log.append(tx)

        log = logger.info if self.verbose else logger.debug
        log("%s APPLIED %s: %s", self.name, tx.exec_id, list(tx.moves))
        return ExecuteResult.APPLIED

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a pending transaction against all constraints.

        Returns:
            (True, "") on success, (False, reason) otherwise
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        net: Dict[Tuple[str, str], int] = defaultdict(int)
        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            net[(move.source, move.unit_symbol)] -= move.quantity
            net[(move.dest, move.unit_symbol)] += move.quantity

        # SYSTEM_WALLET is exempt: it carries minus the circulating supply
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.get_balance(wallet, unit_sym) + delta
            if proposed < 0:
                return False, f"{wallet} {unit_sym}: {proposed} < 0"

        return True, ""

    def _execute_moves(self, moves) -> None:
        for move in moves:
            self.balances[move.source][move.unit_symbol] -= move.quantity
            self.balances[move.dest][move.unit_symbol] += move.quantity

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def snapshot(self) -> Tuple[Dict[str, Dict[str, int]], int, int]:
        """Capture balances and log position for a later restore()."""
        balances = {wallet: dict(bals) for wallet, bals in self.balances.items()}
        return balances, len(self.transaction_log), self._next_sequence

    def restore(self, snapshot: Tuple[Dict[str, Dict[str, int]], int, int]) -> None:
        """
        Return balances and the transaction log to a snapshot() state.

        Transactions executed after the snapshot are dropped from the log.
        """
        balances, log_length, next_sequence = snapshot
        if log_length > len(self.transaction_log):
            raise LedgerError("Cannot restore a snapshot taken after the current state")
        self.balances = defaultdict(lambda: defaultdict(int))
        for wallet, bals in balances.items():
            self.balances[wallet] = defaultdict(int, bals)
        del self.transaction_log[log_length:]
        self._next_sequence = next_sequence
