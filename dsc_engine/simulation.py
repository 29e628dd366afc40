"""
simulation.py - Price stress scenarios for a running engine

Walks one price path per collateral asset, publishes each step to the feeds,
lets a keeper liquidate every account that falls below the minimum health
factor, and records system-wide collateral value, outstanding DSC and
solvency after each step.

Price paths are plain integer arrays in the feeds' decimals, so a scenario
can be random (generate_price_path) or scripted (np.linspace, a list).
Accounting stays in integers; only the recorded series are floats, in whole
units of account.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Mapping, Optional, Sequence
import logging

import numpy as np

from .core import PRECISION, EngineError
from .engine import DSCEngine
from .ledger import TokenLedger
from .pricing_source import StaticPriceFeed

logger = logging.getLogger(__name__)


@dataclass
class StressResult:
    """
    Per-step series recorded by run_stress_scenario().

    Attributes:
        assets: Asset order of the prices columns
        prices: (steps, n_assets) feed answers
        collateral_value: Deposited collateral value per step (whole USD)
        dsc_supply: Outstanding DSC per step (whole units)
        solvent: verify_solvency()['valid'] per step
        liquidations: Successful liquidations
        failed_liquidations: Liquidations the engine rejected
    """
    assets: List[str]
    prices: np.ndarray
    collateral_value: np.ndarray
    dsc_supply: np.ndarray
    solvent: np.ndarray
    liquidations: int = 0
    failed_liquidations: int = 0

    @property
    def steps(self) -> int:
        return len(self.solvent)

    @property
    def always_solvent(self) -> bool:
        return bool(self.solvent.all())

    def collateralization(self) -> np.ndarray:
        """Collateral value over outstanding DSC; inf where nothing is outstanding."""
        ratio = np.full(self.steps, np.inf)
        np.divide(self.collateral_value, self.dsc_supply, out=ratio, where=self.dsc_supply > 0)
        return ratio


def generate_price_path(
    initial_answer: int,
    steps: int,
    volatility: float,
    drift: float = 0.0,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Geometric Brownian price path.

    Args:
        initial_answer: Starting feed answer (feed decimals)
        steps: Number of moves after the starting point
        volatility: Standard deviation of per-step log returns
        drift: Mean per-step log return before the volatility correction
        seed: Seed for numpy's default_rng

    Returns:
        int64 array of length steps + 1, starting at initial_answer, floored at 1
    """
    if initial_answer <= 0:
        raise ValueError(f"initial_answer must be positive, got {initial_answer}")
    if steps < 0:
        raise ValueError(f"steps cannot be negative, got {steps}")
    if volatility < 0:
        raise ValueError(f"volatility cannot be negative, got {volatility}")

    rng = np.random.default_rng(seed)
    log_returns = rng.normal(drift - 0.5 * volatility ** 2, volatility, steps)
    growth = np.exp(np.concatenate(([0.0], np.cumsum(log_returns))))
    path = np.floor(initial_answer * growth).astype(np.int64)
    path[0] = initial_answer
    return np.maximum(path, 1)


def _choose_liquidation(engine: DSCEngine, debtor: str, keeper_dsc: int):
    """
    Pick the debtor's largest collateral asset and the debt the keeper can cover.

    Returns (asset, debt_to_cover), or None when nothing can be covered.
    """
    best_asset, best_value = None, 0
    for asset in engine.get_collateral_tokens():
        balance = engine.get_collateral_balance_of_user(debtor, asset)
        if balance:
            value = engine.get_usd_value(asset, balance)
            if value > best_value:
                best_asset, best_value = asset, value
    if best_asset is None:
        return None

    # Seizure is token_amount * (1 + bonus); cap the cover so it fits the deposit.
    precision = engine.get_liquidation_precision()
    seizable = best_value * precision // (precision + engine.get_liquidation_bonus())
    debt, _ = engine.get_account_information(debtor)
    debt_to_cover = min(debt, keeper_dsc, seizable)
    if debt_to_cover <= 0:
        return None
    return best_asset, debt_to_cover


def run_stress_scenario(
    engine: DSCEngine,
    chain: TokenLedger,
    feeds: Mapping[str, StaticPriceFeed],
    paths: Mapping[str, Sequence[int]],
    keeper: str,
    step: timedelta = timedelta(hours=1),
) -> StressResult:
    """
    Replay price paths against an engine, liquidating as prices move.

    The keeper must hold DSC and have approved the engine to spend it. Time
    advances by `step` between observations, and each feed is stamped with
    the ledger's time, so quotes are never stale during the run.

    Args:
        engine: Engine under test; its clock must follow chain.current_time
        chain: Ledger whose time drives the scenario
        feeds: asset -> feed to publish into
        paths: asset -> feed answers, one per step, all the same length
        keeper: Liquidator account
        step: Time between observations

    Returns:
        StressResult with one row per step
    """
    assets = list(paths)
    missing = [a for a in assets if a not in feeds]
    if missing:
        raise ValueError(f"No feed for assets {missing}")
    lengths = {len(paths[a]) for a in assets}
    if len(lengths) != 1:
        raise ValueError(f"Price paths differ in length: {sorted(lengths)}")
    n_steps = lengths.pop()

    prices = np.array([list(paths[a]) for a in assets], dtype=np.int64).T.reshape(n_steps, len(assets))
    collateral_value = np.zeros(n_steps)
    dsc_supply = np.zeros(n_steps)
    solvent = np.zeros(n_steps, dtype=bool)
    result = StressResult(assets, prices, collateral_value, dsc_supply, solvent)
    min_health = engine.get_min_health_factor()
    dsc = engine.get_dsc()

    for i in range(n_steps):
        if i:
            chain.advance_time(chain.current_time + step)
        for j, asset in enumerate(assets):
            feeds[asset].update_answer(int(prices[i, j]), chain.current_time)

        for debtor in engine.get_debt_accounts():
            if debtor == keeper or engine.get_health_factor(debtor) >= min_health:
                continue
            choice = _choose_liquidation(engine, debtor, dsc.balance_of(keeper))
            if choice is None:
                logger.warning("Step %d: %s is liquidatable but cannot be covered", i, debtor)
                result.failed_liquidations += 1
                continue
            asset, debt_to_cover = choice
            try:
                engine.liquidate(keeper, asset, debtor, debt_to_cover)
            except EngineError as exc:
                logger.warning("Step %d: liquidation of %s rejected: %s", i, debtor, exc)
                result.failed_liquidations += 1
            else:
                result.liquidations += 1

        report = engine.verify_solvency()
        collateral_value[i] = report['collateral_value'] / PRECISION
        dsc_supply[i] = report['dsc_outstanding'] / PRECISION
        solvent[i] = report['valid']
        logger.debug("Step %d: collateral %.2f, DSC %.2f, solvent %s",
                     i, collateral_value[i], dsc_supply[i], solvent[i])

    logger.info("Stress run: %d steps, %d liquidations, %d rejected",
                n_steps, result.liquidations, result.failed_liquidations)
    return result


def summarize(result: StressResult) -> Dict[str, float]:
    """Headline numbers of a stress run."""
    ratio = result.collateralization()
    finite = ratio[np.isfinite(ratio)]
    return {
        'steps': result.steps,
        'liquidations': result.liquidations,
        'failed_liquidations': result.failed_liquidations,
        'always_solvent': result.always_solvent,
        'min_collateralization': float(finite.min()) if finite.size else float('inf'),
        'final_collateral_value': float(result.collateral_value[-1]) if result.steps else 0.0,
    }
