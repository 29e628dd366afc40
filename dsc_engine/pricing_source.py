"""
pricing_source.py - Reference price feeds

Feeds report an integer answer in USD with `decimals` decimal places together
with the time of the last update, the shape of a Chainlink aggregator round.

Classes:
- StaticPriceFeed: a single answer, updated explicitly
- TimeSeriesPriceFeed: historical answers; reports the latest one at or
  before the clock's current time

Neither feed checks staleness; that is the oracle adapter's job.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime
from typing import List, Optional, Tuple

from .core import Clock, DEFAULT_FEED_DECIMALS, OracleUnavailable


class StaticPriceFeed:
    """
    Price feed holding one answer until it is updated.

    Example:
        feed = StaticPriceFeed(2000 * 10**8, updated_at=datetime(2025, 1, 1))
        feed.update_answer(1800 * 10**8, datetime(2025, 1, 2))
    """

    def __init__(self, answer: int, decimals: int = DEFAULT_FEED_DECIMALS,
                 updated_at: Optional[datetime] = None, description: str = ""):
        self.decimals = decimals
        self.description = description
        self.answer = answer
        self.updated_at = updated_at or datetime(2025, 1, 1)

    def latest_price(self) -> Tuple[int, datetime]:
        return self.answer, self.updated_at

    def update_answer(self, answer: int, updated_at: datetime) -> None:
        """Publish a new round."""
        self.answer = answer
        self.updated_at = updated_at

    def __repr__(self):
        return f"StaticPriceFeed({self.description or self.answer}, decimals={self.decimals})"


class TimeSeriesPriceFeed:
    """
    Price feed backed by a history of (timestamp, answer) observations.

    latest_price() returns the most recent observation at or before clock().
    """

    def __init__(
        self,
        clock: Clock,
        history: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = DEFAULT_FEED_DECIMALS,
    ):
        """
        Args:
            clock: Source of the current time (e.g. lambda: ledger.current_time)
            history: Optional list of (timestamp, answer); sorted on load
            decimals: Decimal places of the answers
        """
        self.clock = clock
        self.decimals = decimals
        self.history: List[Tuple[datetime, int]] = sorted(history or [], key=lambda x: x[0])

    def add_answer(self, timestamp: datetime, answer: int) -> None:
        self.history.append((timestamp, answer))
        self.history.sort(key=lambda x: x[0])

    def latest_price(self) -> Tuple[int, datetime]:
        """
        Raises:
            OracleUnavailable: If no observation exists at or before now
        """
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, self.clock())
        if idx == 0:
            raise OracleUnavailable("No price observation at or before the current time")
        ts, answer = self.history[idx - 1]
        return answer, ts

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, decimals={self.decimals})"
