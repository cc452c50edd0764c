"""
Data models for daily price bars and provider interfaces.
"""

from dataclasses import dataclass, asdict
from datetime import date
from typing import Any, Dict, List, Protocol, Sequence


@dataclass(frozen=True)
class PriceBar:
    """
    Daily OHLCV bar for the underlying.

    Bars are keyed by (symbol, date) in the cache and are never mutated once stored.
    """
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        row["date"] = self.date.isoformat()
        return row


class PriceBarCache(Protocol):
    """
    Protocol for the persistent bar cache.

    Writes must be idempotent: inserting a bar whose (symbol, date) already exists is a no-op.
    """

    def get_bars(self, symbol: str, start: date, end: date) -> List[PriceBar]:
        """
        Return cached bars for symbol with start <= date <= end, ascending by date.
        """
        ...

    def insert_bars(self, symbol: str, bars: Sequence[PriceBar]) -> int:
        """
        Insert bars, ignoring (symbol, date) conflicts.

        Returns:
            Number of rows actually inserted
        """
        ...


class BarSource(Protocol):
    """
    Protocol for upstream daily bar sources.

    Implementations raise UpstreamError when the source is unreachable or misconfigured.
    """

    def fetch_bars(self, symbol: str, start: date, end: date) -> List[PriceBar]:
        ...
