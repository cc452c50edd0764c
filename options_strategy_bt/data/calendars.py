"""
US equity market calendar backed by pandas_market_calendars' NYSE schedule.

Sessions are loaded one calendar year at a time and memoized, so holiday rules,
observed-date shifting and one-off closures (days of mourning, 9/11, Hurricane Sandy)
all come from the exchange calendar rather than from local rules.
"""

from datetime import date, timedelta
from functools import lru_cache
from typing import FrozenSet, List, Set

import pandas_market_calendars as mcal

CALENDAR_NAME = "NYSE"


@lru_cache(maxsize=1)
def _calendar() -> mcal.MarketCalendar:
    return mcal.get_calendar(CALENDAR_NAME)


@lru_cache(maxsize=None)
def _sessions(year: int) -> FrozenSet[date]:
    days = _calendar().valid_days(start_date=date(year, 1, 1), end_date=date(year, 12, 31))
    return frozenset(ts.date() for ts in days)


def nyse_holidays(year: int) -> Set[date]:
    """Weekdays in the given calendar year on which the NYSE was (or will be) closed"""
    sessions = _sessions(year)
    cursor, last = date(year, 1, 1), date(year, 12, 31)
    out: Set[date] = set()
    while cursor <= last:
        if cursor.weekday() < 5 and cursor not in sessions:
            out.add(cursor)
        cursor += timedelta(days=1)
    return out


def is_market_holiday(d: date) -> bool:
    return d.weekday() < 5 and d not in _sessions(d.year)


def is_trading_day(d: date) -> bool:
    return d in _sessions(d.year)


def previous_trading_day(d: date) -> date:
    """Latest trading day on or before d"""
    cursor = d
    while not is_trading_day(cursor):
        cursor -= timedelta(days=1)
    return cursor


def trading_days(start: date, end: date) -> List[date]:
    """
    All trading days in [start, end], ascending.

    Example:
        >>> trading_days(date(2024, 7, 3), date(2024, 7, 8))
        [datetime.date(2024, 7, 3), datetime.date(2024, 7, 5), datetime.date(2024, 7, 8)]
    """
    if end < start:
        return []
    days: List[date] = []
    for year in range(start.year, end.year + 1):
        days.extend(d for d in _sessions(year) if start <= d <= end)
    return sorted(days)
