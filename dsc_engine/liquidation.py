"""
liquidation.py - Liquidation of under-margined positions

A liquidator repays part or all of a debtor's DSC debt and receives the
equivalent collateral plus a bonus. The liquidation must strictly improve
the debtor's health factor and leave the liquidator's own position healthy.

Sequence (inside the engine's atomic scope):
    1. debtor must currently be liquidatable      -> HealthFactorOk
    2. token_amount = amount_from_usd(asset, debt_to_cover)
    3. bonus = token_amount * bonus // precision; seize token_amount + bonus
       from the debtor to the liquidator
    4. burn debt_to_cover on the debtor's behalf, paid by the liquidator
    5. debtor's health factor must have strictly increased
                                                  -> HealthFactorNotImproved
    6. liquidator's health factor must be at least the minimum
                                                  -> HealthFactorBreached

Seizing more than the debtor deposited surfaces as BalanceUnderflow.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable
import logging

from .core import (
    EngineConfig,
    ZeroAmount, HealthFactorOk, HealthFactorNotImproved, HealthFactorBreached,
    UnsupportedAsset,
)
from .collateral_ledger import CollateralLedger
from .debt_ledger import DebtLedger
from .oracle import PriceOracleAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiquidationPlan:
    """Collateral owed to a liquidator for covering a given debt."""
    debt_to_cover: int
    token_amount: int
    bonus: int

    @property
    def total_collateral(self) -> int:
        return self.token_amount + self.bonus


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """Immutable record of a completed liquidation."""
    liquidator: str
    debtor: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus: int
    starting_health_factor: int
    ending_health_factor: int


def calculate_liquidation(debt_to_cover: int, token_amount: int,
                          config: EngineConfig) -> LiquidationPlan:
    """
    PURE FUNCTION - plan the collateral transfer for a liquidation.

    Args:
        debt_to_cover: DSC repaid by the liquidator (18 decimals)
        token_amount: Collateral worth debt_to_cover at the current price
        config: Supplies bonus and precision

    Returns:
        LiquidationPlan with the bonus rounded down
    """
    bonus = token_amount * config.liquidation_bonus // config.liquidation_precision
    return LiquidationPlan(debt_to_cover=debt_to_cover, token_amount=token_amount, bonus=bonus)


class LiquidationEngine:
    """
    Executes liquidations against the collateral and debt ledgers.

    Holds no state of its own; health factors are read through health_of so
    they always reflect the ledgers' current contents.
    """

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        oracle: PriceOracleAdapter,
        config: EngineConfig,
        health_of: Callable[[str], int],
    ):
        self.collateral = collateral
        self.debt = debt
        self.oracle = oracle
        self.config = config
        self.health_of = health_of

    def liquidate(self, liquidator: str, asset: str, debtor: str,
                  debt_to_cover: int) -> LiquidationResult:
        if debt_to_cover == 0:
            raise ZeroAmount("Debt to cover must be greater than zero")
        if debt_to_cover < 0:
            raise ValueError(f"Debt to cover cannot be negative, got {debt_to_cover}")
        if asset not in self.collateral.positions_of(debtor):
            raise UnsupportedAsset(asset)

        starting = self.health_of(debtor)
        if starting >= self.config.min_health_factor:
            raise HealthFactorOk(f"{debtor} is not liquidatable (health factor {starting})")

        token_amount = self.oracle.amount_from_usd(asset, debt_to_cover)
        plan = calculate_liquidation(debt_to_cover, token_amount, self.config)

        self.collateral.withdraw(asset, plan.total_collateral, debtor, liquidator)
        self.debt.burn(debt_to_cover, on_behalf_of=debtor, payer=liquidator)

        ending = self.health_of(debtor)
        if ending <= starting:
            raise HealthFactorNotImproved(
                f"Health factor of {debtor} went from {starting} to {ending}"
            )

        liquidator_health = self.health_of(liquidator)
        if liquidator_health < self.config.min_health_factor:
            raise HealthFactorBreached(liquidator, liquidator_health)

        logger.info(
            "%s liquidated %s: covered %s DSC, seized %s %s (bonus %s)",
            liquidator, debtor, debt_to_cover, plan.total_collateral, asset, plan.bonus,
        )
        return LiquidationResult(
            liquidator=liquidator,
            debtor=debtor,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=plan.total_collateral,
            bonus=plan.bonus,
            starting_health_factor=starting,
            ending_health_factor=ending,
        )
