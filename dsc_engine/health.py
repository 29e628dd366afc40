"""
health.py - Health factor calculation

PURE FUNCTIONS - all inputs explicit, no ledger or oracle access.

Key Formulas:
    adjusted_collateral = collateral_value * liquidation_threshold // liquidation_precision
    health_factor       = adjusted_collateral * PRECISION // debt
    health_factor       = MAX_HEALTH_FACTOR when debt == 0

A health factor of exactly min_health_factor (1e18) is the lowest safe value;
anything below is liquidatable.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Mapping

from .core import PRECISION, MAX_HEALTH_FACTOR, EngineConfig


@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Immutable result of assess_health()."""
    debt: int
    collateral_value_in_usd: int
    health_factor: int
    min_health_factor: int

    @property
    def is_liquidatable(self) -> bool:
        return self.health_factor < self.min_health_factor


def calculate_health_factor(debt: int, collateral_value_in_usd: int,
                            config: EngineConfig) -> int:
    """
    Health factor of a position, scaled by PRECISION.

    Args:
        debt: DSC minted (18 decimals)
        collateral_value_in_usd: Raw collateral value (18 decimals)
        config: Supplies the threshold haircut

    Returns:
        MAX_HEALTH_FACTOR if debt is zero, else the haircut ratio
    """
    if debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = (collateral_value_in_usd * config.liquidation_threshold
                // config.liquidation_precision)
    return adjusted * PRECISION // debt


def calculate_collateral_value(
    balances: Mapping[str, int],
    usd_value: Callable[[str, int], int],
) -> int:
    """
    Sum the USD value of every registered asset's balance.

    Zero balances contribute zero without a price lookup.
    """
    total = 0
    for asset, amount in balances.items():
        if amount:
            total += usd_value(asset, amount)
    return total


def assess_health(debt: int, collateral_value_in_usd: int,
                  config: EngineConfig) -> HealthStatus:
    return HealthStatus(
        debt=debt,
        collateral_value_in_usd=collateral_value_in_usd,
        health_factor=calculate_health_factor(debt, collateral_value_in_usd, config),
        min_health_factor=config.min_health_factor,
    )
