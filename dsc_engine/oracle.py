"""
oracle.py - Price oracle adapter

Wraps one price feed per collateral asset, rejects stale or unusable quotes,
and converts between asset amounts and USD value in 18-decimal fixed point.

Scaling:
    A feed answer with d decimals is lifted to 18 decimals by multiplying
    with 10**(18 - d) (1e10 for the usual 8-decimal USD feeds).

    usd_value(asset, amount)       = answer * scale * amount // PRECISION
    amount_from_usd(asset, usd)    = usd * PRECISION // (answer * scale)

Both multiply before they divide, so each conversion loses at most one unit
to integer division and amount_from_usd(usd_value(x)) is within one unit of
x whenever the price is at least one whole USD.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional, Tuple
import logging

from .core import (
    PRECISION, DEFAULT_ORACLE_TIMEOUT,
    Clock, PriceFeed,
    OracleStale, OracleUnavailable,
    feed_scale,
)

logger = logging.getLogger(__name__)


class PriceOracleAdapter:
    """
    Per-asset price access with staleness checks.

    Stateless per call: every conversion re-reads the feed. No quote is
    cached across operations.
    """

    def __init__(
        self,
        feeds: Mapping[str, PriceFeed],
        max_age: timedelta = DEFAULT_ORACLE_TIMEOUT,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            feeds: asset -> price feed
            max_age: Oldest quote age still accepted
            clock: Current time source (default: datetime.now)

        Raises:
            ValueError: If a feed reports more than 18 decimals
        """
        self._feeds: Dict[str, PriceFeed] = dict(feeds)
        self._scales: Dict[str, int] = {
            asset: feed_scale(feed.decimals) for asset, feed in self._feeds.items()
        }
        self.max_age = max_age
        self.clock: Clock = clock or datetime.now

    def feed_for(self, asset: str) -> PriceFeed:
        feed = self._feeds.get(asset)
        if feed is None:
            raise OracleUnavailable(f"No price feed registered for {asset!r}")
        return feed

    def scale_of(self, asset: str) -> int:
        """Factor lifting this asset's feed answers to 18 decimals."""
        self.feed_for(asset)
        return self._scales[asset]

    def price_of(self, asset: str) -> Tuple[int, datetime]:
        """
        Read the latest quote for an asset.

        Returns:
            (answer, updated_at) with the feed's own decimals

        Raises:
            OracleUnavailable: No feed for the asset, or a non-positive answer
            OracleStale: Quote older than max_age, or stamped in the future
        """
        feed = self.feed_for(asset)
        answer, as_of = feed.latest_price()
        if answer <= 0:
            raise OracleUnavailable(f"Feed for {asset!r} reported non-positive answer {answer}")

        now = self.clock()
        age = now - as_of
        if age > self.max_age:
            logger.warning("Stale price for %s: updated %s, now %s", asset, as_of, now)
            raise OracleStale(f"Price for {asset!r} is {age} old (max {self.max_age})")
        if age < timedelta(0):
            raise OracleStale(f"Price for {asset!r} is stamped in the future ({as_of} > {now})")
        return answer, as_of

    def usd_value(self, asset: str, amount: int) -> int:
        """USD value (18 decimals) of an amount (18 decimals) of asset."""
        answer, _ = self.price_of(asset)
        return answer * self._scales[asset] * amount // PRECISION

    def amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Amount of asset (18 decimals) worth usd_amount (18 decimals)."""
        answer, _ = self.price_of(asset)
        return usd_amount * PRECISION // (answer * self._scales[asset])
