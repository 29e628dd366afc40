"""
Core types and pure helpers for the DSC collateralized-debt engine.

This module provides the foundational pieces shared by every other module:
1. Constants: fixed-point precision and liquidation parameters
2. Exceptions: EngineError taxonomy and the token-ledger LedgerError family
3. Protocols: collaborator interfaces (price feeds, tokens, rollback support)
4. Immutable data structures: Move, PendingTransaction, Transaction, Unit,
   SupportedAsset, notifications
5. Configuration: EngineConfig

All amounts are Python ints in a fixed-point representation with
PRECISION_DECIMALS (18) decimal places. No float ever enters an accounting
expression.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Any, Callable, Dict, List, Mapping, NamedTuple, Protocol,
    Tuple, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Canonical internal precision. Every amount and USD value carries 18 decimals.
PRECISION_DECIMALS = 18
PRECISION = 10 ** PRECISION_DECIMALS

# Chainlink-style USD feeds report 8 decimals; scaling them to 18 needs 1e10.
DEFAULT_FEED_DECIMALS = 8
ADDITIONAL_FEED_PRECISION = 10 ** (PRECISION_DECIMALS - DEFAULT_FEED_DECIMALS)

# Liquidation parameters (percentages over LIQUIDATION_PRECISION).
LIQUIDATION_THRESHOLD = 50   # 200% overcollateralized
LIQUIDATION_BONUS = 10       # 10% bonus to the liquidator
LIQUIDATION_PRECISION = 100
MIN_HEALTH_FACTOR = PRECISION

# Health factor reported for accounts with no debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Maximum age of a price quote before it is considered stale.
DEFAULT_ORACLE_TIMEOUT = timedelta(hours=3)

# Reserved wallet used as counterparty for issuance and retirement.
SYSTEM_WALLET = "system"

UNIT_TYPE_COLLATERAL = "COLLATERAL"
UNIT_TYPE_STABLECOIN = "STABLECOIN"


def to_fixed(whole: int, decimals: int = PRECISION_DECIMALS) -> int:
    """Convert a whole-unit integer to its fixed-point representation."""
    return whole * 10 ** decimals


def feed_scale(decimals: int) -> int:
    """
    Return the factor that lifts a feed answer to PRECISION_DECIMALS.

    Raises:
        ValueError: If the feed reports more decimals than the internal precision.
    """
    if decimals < 0 or decimals > PRECISION_DECIMALS:
        raise ValueError(
            f"Feed decimals must be within [0, {PRECISION_DECIMALS}], got {decimals}"
        )
    return 10 ** (PRECISION_DECIMALS - decimals)


def _require_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    return value


# ============================================================================
# EXCEPTIONS - ENGINE
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(EngineError):
    """Input rejected before any state was touched."""
    pass


class ZeroAmount(ValidationError):
    """Raised when an operation is called with an amount of zero."""
    pass


class UnsupportedAsset(ValidationError):
    """Raised when an asset is not in the collateral registry."""

    def __init__(self, asset: str):
        super().__init__(f"Asset {asset!r} is not a supported collateral")
        self.asset = asset


class TokenAddressesAndPriceFeedAddressesMustBeSameLength(ValidationError):
    """Raised when the collateral token and price feed lists differ in length."""
    pass


class DuplicateAsset(ValidationError):
    """Raised when the same collateral asset is registered twice."""
    pass


class InvariantError(EngineError):
    """A health-factor invariant rejected the operation."""
    pass


class HealthFactorBreached(InvariantError):
    """Raised when an operation would leave an account below the minimum health factor."""

    def __init__(self, user: str, health_factor: int):
        super().__init__(f"Health factor of {user} would be {health_factor}")
        self.user = user
        self.health_factor = health_factor


class HealthFactorOk(InvariantError):
    """Raised when liquidating an account that is not liquidatable."""
    pass


class HealthFactorNotImproved(InvariantError):
    """Raised when a liquidation does not strictly improve the debtor's health factor."""
    pass


class InteractionError(EngineError):
    """An external collaborator reported failure."""
    pass


class TransferFailed(InteractionError):
    """Raised when a token transfer signals failure."""
    pass


class MintFailed(InteractionError):
    """Raised when the stable token refuses to mint."""
    pass


class OracleError(EngineError):
    """Price data could not be used."""
    pass


class OracleStale(OracleError):
    """Raised when a quote is older than the configured maximum age."""
    pass


class OracleUnavailable(OracleError):
    """Raised when no usable feed exists for an asset."""
    pass


class BalanceUnderflow(EngineError, ArithmeticError):
    """Raised when a decrease would take a recorded balance below zero."""

    def __init__(self, what: str, balance: int, amount: int):
        super().__init__(f"{what}: cannot remove {amount}, only {balance} recorded")
        self.balance = balance
        self.amount = amount


class ReentrancyDetected(EngineError):
    """Raised when a mutating operation is re-entered while one is in flight."""
    pass


# ============================================================================
# EXCEPTIONS - TOKEN LEDGER
# ============================================================================

class LedgerError(Exception):
    """Base exception for token-ledger errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a unit that has not been registered with the ledger."""
    pass


class TokenError(LedgerError):
    """Raised by token collaborators on invalid calls."""
    pass


class Unauthorized(TokenError):
    """Raised when a restricted token function is called by someone other than the owner."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """
    Price source for one collateral asset, denominated in USD.

    latest_price() returns (answer, updated_at) where answer carries
    `decimals` decimal places.
    """
    decimals: int

    def latest_price(self) -> Tuple[int, datetime]:
        ...


@runtime_checkable
class FungibleAsset(Protocol):
    """Transfer interface of a collateral token. Boolean results signal success."""
    symbol: str

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, source: str, dest: str, amount: int) -> bool:
        ...


@runtime_checkable
class MintableBurnable(FungibleAsset, Protocol):
    """The stable token: fungible, plus owner-gated issuance and retirement."""

    def mint(self, caller: str, to: str, amount: int) -> bool:
        ...

    def burn(self, caller: str, amount: int) -> None:
        ...


@runtime_checkable
class SupportsRollback(Protocol):
    """Participant in an atomic scope: capture state, restore it on abort."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


Clock = Callable[[], datetime]


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a token-ledger transaction.

    APPLIED: All moves were validated and applied.
    REJECTED: Validation failed; nothing was applied.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# TOKEN LEDGER DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of a unit between two wallets.

    Attributes:
        quantity: Amount in the unit's smallest denomination (positive int).
        unit_symbol: Symbol of the unit being moved.
        source: Wallet debited.
        dest: Wallet credited.
        contract_id: Identifier of the caller generating this move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        _require_int("Move quantity", self.quantity)
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """A batch of moves awaiting execution; applied all together or not at all."""
    moves: Tuple[Move, ...]
    timestamp: datetime

    def is_empty(self) -> bool:
        return not self.moves


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of token movements.

    Attributes:
        moves: The applied moves
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        execution_time: Ledger time at execution
        sequence_number: Monotonic sequence within the ledger
    """
    moves: Tuple[Move, ...]
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a fungible unit held in the token ledger.

    Attributes:
        symbol: Short identifier (e.g. "WETH", "DSC").
        name: Human-readable name.
        unit_type: COLLATERAL or STABLECOIN.
        decimals: Decimal places of the smallest denomination.
    """
    symbol: str
    name: str
    unit_type: str
    decimals: int = PRECISION_DECIMALS


def build_transaction(view: Any, moves: List[Move]) -> PendingTransaction:
    """
    Build a PendingTransaction stamped with the ledger's current time.

    Args:
        view: Anything exposing current_time (normally a TokenLedger)
        moves: Moves to include

    Returns:
        A PendingTransaction ready for execution
    """
    return PendingTransaction(moves=tuple(moves), timestamp=view.current_time)


# ============================================================================
# ENGINE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class SupportedAsset:
    """A registered collateral asset: its token collaborator and its price feed."""
    asset: str
    token: FungibleAsset
    price_feed: PriceFeed


class AccountInformation(NamedTuple):
    """Derived view of an account, never stored."""
    total_dsc_minted: int
    collateral_value_in_usd: int


@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Collateral left custody. redeemed_from is debited, redeemed_to receives it."""
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


Notification = Any
Listener = Callable[[Notification], None]


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Risk parameters of the engine, fixed at construction.

    The collateral haircut is liquidation_threshold / liquidation_precision;
    the liquidator reward is liquidation_bonus / liquidation_precision.
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_bonus: int = LIQUIDATION_BONUS
    liquidation_precision: int = LIQUIDATION_PRECISION
    min_health_factor: int = MIN_HEALTH_FACTOR
    oracle_timeout: timedelta = DEFAULT_ORACLE_TIMEOUT

    def __post_init__(self):
        for name in ("liquidation_threshold", "liquidation_bonus",
                     "liquidation_precision", "min_health_factor"):
            _require_int(name, getattr(self, name))
        if self.liquidation_precision <= 0:
            raise ValueError(
                f"liquidation_precision must be positive, got {self.liquidation_precision}"
            )
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be within (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")
        if self.oracle_timeout <= timedelta(0):
            raise ValueError(f"oracle_timeout must be positive, got {self.oracle_timeout}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> EngineConfig:
        """
        Build a config from plain data (e.g. a parsed JSON document).

        Unknown keys are rejected. The timeout is given as oracle_timeout_seconds.
        """
        known = {
            'liquidation_threshold', 'liquidation_bonus', 'liquidation_precision',
            'min_health_factor', 'oracle_timeout_seconds',
        }
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {
            k: raw[k] for k in known - {'oracle_timeout_seconds'} if k in raw
        }
        if 'oracle_timeout_seconds' in raw:
            kwargs['oracle_timeout'] = timedelta(seconds=raw['oracle_timeout_seconds'])
        return cls(**kwargs)
