"""
engine.py - DSCEngine orchestrator

The engine is the only entry point that mutates collateral and debt. Every
mutating operation:

    1. acquires the ReentrancyGuard (same-thread re-entry fails closed,
       other threads wait)
    2. opens an atomic scope: the collateral ledger, the debt ledger and
       every collaborator that supports snapshot()/restore() are saved
    3. runs checks -> effects -> token interaction, buffering notifications
    4. re-validates the health factor of every account it touched
    5. commits: buffered notifications are appended to event_log, the
       guard is released, then listeners receive them. A listener that
       raises is logged and skipped.

Any exception inside the scope, KeyboardInterrupt included, restores every
savepoint, discards the buffered notifications and propagates unchanged.

Example:
    engine = DSCEngine([weth, wbtc], [eth_feed, btc_feed], dsc, clock=lambda: chain.current_time)
    dsc.transfer_ownership("deployer", engine.address)
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * PRECISION, 1000 * PRECISION)
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import threading

from .core import (
    PRECISION, ADDITIONAL_FEED_PRECISION,
    EngineConfig, AccountInformation, SupportedAsset,
    Clock, FungibleAsset, MintableBurnable, PriceFeed, SupportsRollback,
    Listener, Notification,
    TokenAddressesAndPriceFeedAddressesMustBeSameLength, DuplicateAsset, UnsupportedAsset,
    HealthFactorBreached, ReentrancyDetected,
)
from .oracle import PriceOracleAdapter
from .collateral_ledger import CollateralLedger
from .debt_ledger import DebtLedger
from .health import calculate_health_factor, calculate_collateral_value, assess_health, HealthStatus
from .liquidation import LiquidationEngine, LiquidationResult

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    """
    Mutual exclusion for mutating operations.

    A thread re-entering while it already holds the guard gets
    ReentrancyDetected instead of deadlocking on its own lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._holder: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._holder is not None

    @contextmanager
    def hold(self) -> Iterator[None]:
        me = threading.get_ident()
        if self._holder == me:
            raise ReentrancyDetected("Mutating operation re-entered while in flight")
        with self._lock:
            self._holder = me
            try:
                yield
            finally:
                self._holder = None


class DSCEngine:
    """
    Collateralized-debt engine for the DSC stable token.

    Args:
        collateral_tokens: One token per collateral asset; the asset id is token.symbol
        price_feeds: USD price feed for each token, in the same order
        dsc: The stable token; the engine must be its owner before minting
        config: Risk parameters (default: EngineConfig())
        clock: Time source for oracle staleness checks (default: datetime.now)
        address: Wallet identity of the engine (custodian of collateral)

    Raises:
        TokenAddressesAndPriceFeedAddressesMustBeSameLength: list lengths differ
        DuplicateAsset: two tokens share a symbol
    """

    def __init__(
        self,
        collateral_tokens: Sequence[FungibleAsset],
        price_feeds: Sequence[PriceFeed],
        dsc: MintableBurnable,
        config: Optional[EngineConfig] = None,
        clock: Optional[Clock] = None,
        address: str = "dsc_engine",
    ):
        if len(collateral_tokens) != len(price_feeds):
            raise TokenAddressesAndPriceFeedAddressesMustBeSameLength(
                f"{len(collateral_tokens)} collateral tokens but {len(price_feeds)} price feeds"
            )

        self._assets: Dict[str, SupportedAsset] = {}
        for token, feed in zip(collateral_tokens, price_feeds):
            if token.symbol in self._assets:
                raise DuplicateAsset(f"Collateral asset {token.symbol!r} registered twice")
            self._assets[token.symbol] = SupportedAsset(token.symbol, token, feed)

        self.config = config or EngineConfig()
        self.address = address
        self._dsc = dsc

        self._oracle = PriceOracleAdapter(
            {a: s.price_feed for a, s in self._assets.items()},
            max_age=self.config.oracle_timeout,
            clock=clock,
        )
        self._collateral = CollateralLedger(
            {a: s.token for a, s in self._assets.items()},
            custodian=address,
            emit=self._emit,
        )
        self._debt = DebtLedger(dsc, custodian=address)
        self._liquidation = LiquidationEngine(
            self._collateral, self._debt, self._oracle, self.config, self._health_factor,
        )

        self._guard = ReentrancyGuard()
        self._pending: List[Notification] = []
        self._listeners: List[Listener] = []
        self.event_log: List[Notification] = []

        # Collaborators share state (tokens on one ledger); restore each object once.
        self._rollback_participants: List[SupportsRollback] = [self._collateral, self._debt]
        seen = set()
        for collaborator in [s.token for s in self._assets.values()] + [dsc]:
            if id(collaborator) in seen or not isinstance(collaborator, SupportsRollback):
                continue
            seen.add(id(collaborator))
            self._rollback_participants.append(collaborator)

        logger.info("DSCEngine %s registered collateral %s", address, list(self._assets))

    def __repr__(self) -> str:
        return f"DSCEngine({self.address}, collateral={list(self._assets)})"

    # ========================================================================
    # ATOMIC SCOPE
    # ========================================================================

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        with self._guard.hold():
            savepoints: List[Tuple[SupportsRollback, Any]] = [
                (p, p.snapshot()) for p in self._rollback_participants
            ]
            self._pending = []
            try:
                yield
            except BaseException as exc:
                for participant, saved in reversed(savepoints):
                    participant.restore(saved)
                discarded, self._pending = self._pending, []
                logger.warning("%s rolled back (%s: %s), %d notifications discarded",
                               operation, type(exc).__name__, exc, len(discarded))
                raise
            committed, self._pending = self._pending, []
            self.event_log.extend(committed)
            logger.info("%s committed", operation)
        self._deliver(committed)

    def _emit(self, notification: Notification) -> None:
        self._pending.append(notification)

    def _deliver(self, notifications: List[Notification]) -> None:
        # The operation has committed; a failing listener cannot undo it.
        for notification in notifications:
            for listener in list(self._listeners):
                try:
                    listener(notification)
                except Exception:
                    logger.exception("Listener %r failed on %r", listener, notification)

    def subscribe(self, listener: Listener) -> None:
        """Deliver every committed notification to listener, in order."""
        self._listeners.append(listener)

    # ========================================================================
    # MUTATING OPERATIONS
    # ========================================================================

    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        with self._atomic(f"deposit_collateral({user}, {asset}, {amount})"):
            self._collateral.deposit(user, asset, amount)

    def mint_dsc(self, user: str, amount: int) -> None:
        with self._atomic(f"mint_dsc({user}, {amount})"):
            self._debt.mint(user, amount)
            self._revert_if_health_factor_is_broken(user)

    def deposit_collateral_and_mint_dsc(self, user: str, asset: str,
                                        amount_collateral: int, amount_to_mint: int) -> None:
        """Deposit and mint as one operation; a failed mint also undoes the deposit."""
        with self._atomic(f"deposit_collateral_and_mint_dsc({user}, {asset})"):
            self._collateral.deposit(user, asset, amount_collateral)
            self._debt.mint(user, amount_to_mint)
            self._revert_if_health_factor_is_broken(user)

    def redeem_collateral(self, user: str, asset: str, amount: int) -> None:
        with self._atomic(f"redeem_collateral({user}, {asset}, {amount})"):
            self._collateral.withdraw(asset, amount, from_user=user, to_user=user)
            self._revert_if_health_factor_is_broken(user)

    def burn_dsc(self, user: str, amount: int) -> None:
        with self._atomic(f"burn_dsc({user}, {amount})"):
            self._debt.burn(amount, on_behalf_of=user, payer=user)
            self._revert_if_health_factor_is_broken(user)

    def redeem_collateral_for_dsc(self, user: str, asset: str,
                                  amount_collateral: int, amount_to_burn: int) -> None:
        """Burn DSC, then redeem collateral, then check the resulting health factor."""
        with self._atomic(f"redeem_collateral_for_dsc({user}, {asset})"):
            self._debt.burn(amount_to_burn, on_behalf_of=user, payer=user)
            self._collateral.withdraw(asset, amount_collateral, from_user=user, to_user=user)
            self._revert_if_health_factor_is_broken(user)

    def liquidate(self, liquidator: str, asset: str, debtor: str,
                  debt_to_cover: int) -> LiquidationResult:
        """
        Repay part of debtor's debt in exchange for collateral plus a bonus.

        Raises:
            HealthFactorOk: debtor is not below the minimum health factor
            HealthFactorNotImproved: the debtor's health factor did not increase
            HealthFactorBreached: the liquidator's own position would be unhealthy
            BalanceUnderflow: seizure exceeds the debtor's deposit of asset
        """
        with self._atomic(f"liquidate({liquidator}, {asset}, {debtor}, {debt_to_cover})"):
            return self._liquidation.liquidate(liquidator, asset, debtor, debt_to_cover)

    def _revert_if_health_factor_is_broken(self, user: str) -> None:
        health_factor = self._health_factor(user)
        if health_factor < self.config.min_health_factor:
            raise HealthFactorBreached(user, health_factor)

    # ========================================================================
    # ACCOUNT VIEWS
    # ========================================================================

    def _account_information(self, user: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self._debt.minted_by(user),
            collateral_value_in_usd=self.get_account_collateral_value(user),
        )

    def _health_factor(self, user: str) -> int:
        info = self._account_information(user)
        return calculate_health_factor(info.total_dsc_minted, info.collateral_value_in_usd,
                                       self.config)

    def get_account_information(self, user: str) -> AccountInformation:
        return self._account_information(user)

    def get_health_factor(self, user: str) -> int:
        return self._health_factor(user)

    def get_health_status(self, user: str) -> HealthStatus:
        info = self._account_information(user)
        return assess_health(info.total_dsc_minted, info.collateral_value_in_usd, self.config)

    def calculate_health_factor(self, total_dsc_minted: int, collateral_value_in_usd: int) -> int:
        return calculate_health_factor(total_dsc_minted, collateral_value_in_usd, self.config)

    def get_account_collateral_value(self, user: str) -> int:
        return calculate_collateral_value(self._collateral.positions_of(user),
                                          self._oracle.usd_value)

    def get_collateral_balance_of_user(self, user: str, asset: str) -> int:
        return self._collateral.balance_of(user, asset)

    def get_usd_value(self, asset: str, amount: int) -> int:
        return self._oracle.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        return self._oracle.amount_from_usd(asset, usd_amount)

    def get_debt_accounts(self) -> List[str]:
        """Users with outstanding DSC debt."""
        return self._debt.accounts()

    # ========================================================================
    # REGISTRY AND CONSTANTS
    # ========================================================================

    def get_collateral_tokens(self) -> List[str]:
        return list(self._assets)

    def get_collateral_token(self, asset: str) -> FungibleAsset:
        supported = self._assets.get(asset)
        if supported is None:
            raise UnsupportedAsset(asset)
        return supported.token

    def get_collateral_token_price_feed(self, asset: str) -> PriceFeed:
        return self._oracle.feed_for(asset)

    def get_dsc(self) -> MintableBurnable:
        return self._dsc

    def get_precision(self) -> int:
        return PRECISION

    def get_additional_feed_precision(self) -> int:
        return ADDITIONAL_FEED_PRECISION

    def get_liquidation_threshold(self) -> int:
        return self.config.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.config.liquidation_bonus

    def get_liquidation_precision(self) -> int:
        return self.config.liquidation_precision

    def get_min_health_factor(self) -> int:
        return self.config.min_health_factor

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Check system-wide solvency and custody.

        Solvent when the USD value of all deposited collateral is at least the
        outstanding DSC. Custody holds when the engine's token balance of each
        asset equals the total recorded deposits.

        Returns:
            {'valid', 'collateral_value', 'dsc_outstanding', 'per_asset'}
            where per_asset maps asset -> {'deposited', 'custody', 'usd_value'}
        """
        per_asset: Dict[str, Dict[str, int]] = {}
        collateral_value = 0
        custody_ok = True
        for asset, supported in self._assets.items():
            deposited = self._collateral.total_deposited(asset)
            custody = supported.token.balance_of(self.address)
            usd = self._oracle.usd_value(asset, deposited) if deposited else 0
            per_asset[asset] = {'deposited': deposited, 'custody': custody, 'usd_value': usd}
            collateral_value += usd
            if custody != deposited:
                custody_ok = False

        dsc_outstanding = self._debt.total_minted()
        return {
            'valid': custody_ok and collateral_value >= dsc_outstanding,
            'collateral_value': collateral_value,
            'dsc_outstanding': dsc_outstanding,
            'per_asset': per_asset,
        }
