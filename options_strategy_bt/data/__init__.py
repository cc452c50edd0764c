"""
Data layer: price bars, cache, upstream source, calendars
"""

from .models import PriceBar, PriceBarCache, BarSource
from .providers_sqlite import SQLitePriceCache
from .upstream import AlpacaBarSource
from .memory_cache import TTLCache
from .history import HistoricalPriceProvider
from .calendars import is_trading_day, is_market_holiday, previous_trading_day, trading_days

__all__ = [
    "PriceBar",
    "PriceBarCache",
    "BarSource",
    "SQLitePriceCache",
    "AlpacaBarSource",
    "TTLCache",
    "HistoricalPriceProvider",
    "is_trading_day",
    "is_market_holiday",
    "previous_trading_day",
    "trading_days",
]
