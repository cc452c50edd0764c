"""
Historical price provider: cache-first daily bars with upstream gap filling.
"""

import logging
from datetime import date
from typing import List, Optional

import requests

from ..errors import UpstreamError
from .calendars import trading_days
from .memory_cache import TTLCache
from .models import BarSource, PriceBar, PriceBarCache

logger = logging.getLogger(__name__)


class HistoricalPriceProvider:
    """
    Supplies ascending daily bars for a symbol and date range.

    Lookup order:
    1. optional in-process TTL cache (memoizes whole (symbol, start, end) lookups)
    2. persistent bar cache
    3. upstream source for any missing trading dates, written back with insert-or-ignore

    Upstream failures are logged and the provider continues with whatever is cached.
    """

    def __init__(
        self,
        cache: PriceBarCache,
        upstream: Optional[BarSource] = None,
        memory_cache: Optional[TTLCache] = None,
        today: Optional[date] = None,
    ):
        """
        Args:
            cache: Persistent bar cache
            upstream: Source used to fill gaps (None = cache only)
            memory_cache: Optional injected TTL cache for repeated lookups
            today: Dates after this are never requested upstream (default: date.today())
        """
        self.cache = cache
        self.upstream = upstream
        self.memory_cache = memory_cache
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def missing_dates(self, symbol: str, start: date, end: date) -> List[date]:
        """Trading dates in [start, min(end, today)] with no cached bar"""
        last = min(end, self.today)
        if last < start:
            return []
        cached = {b.date for b in self.cache.get_bars(symbol, start, last)}
        return [d for d in trading_days(start, last) if d not in cached]

    def _fill_from_upstream(self, symbol: str, missing: List[date]) -> None:
        if not missing or self.upstream is None:
            return
        fetch_start, fetch_end = missing[0], missing[-1]
        logger.info(f"{symbol}: {len(missing)} trading days missing from cache, fetching {fetch_start} to {fetch_end}")
        try:
            fetched = self.upstream.fetch_bars(symbol, fetch_start, fetch_end)
        except (UpstreamError, requests.RequestException) as e:
            logger.warning(f"{symbol}: upstream fetch failed, continuing with cached data only: {e}")
            return
        inserted = self.cache.insert_bars(symbol, fetched)
        if inserted:
            logger.info(f"{symbol}: cached {inserted} new bars")
        else:
            # these dates will be requested again on the next run
            logger.debug(f"{symbol}: upstream returned no new bars for {fetch_start} to {fetch_end}")

    def get_bars(self, symbol: str, start: date, end: date) -> List[PriceBar]:
        """
        Get daily bars for symbol in [start, end], ascending, weekends skipped.

        Returns an empty list when nothing exists for the range; callers treat that as fatal.
        """
        symbol = symbol.upper()
        key = (symbol, start, end)

        if self.memory_cache is not None:
            memo = self.memory_cache.get(key)
            if memo is not None:
                return list(memo)

        self._fill_from_upstream(symbol, self.missing_dates(symbol, start, end))

        bars = [b for b in self.cache.get_bars(symbol, start, end) if b.date.weekday() < 5]
        bars.sort(key=lambda b: b.date)

        if bars and self.memory_cache is not None:
            self.memory_cache.set(key, tuple(bars))

        logger.info(f"{symbol}: {len(bars)} bars available from {start} to {end}")
        return bars
