"""
Expiration selection: map a target DTE onto a weekly (Friday) expiry that is a trading day.
"""

from datetime import date, timedelta

from ..data.calendars import previous_trading_day

FRIDAY = 4


def _previous_friday(d: date) -> date:
    return d - timedelta(days=(d.weekday() - FRIDAY) % 7)


def _next_friday(d: date) -> date:
    return d + timedelta(days=(FRIDAY - d.weekday()) % 7)


def calculate_expiration(entry_date: date, dte: int) -> date:
    """
    Expiration for a leg opened on entry_date with target days-to-expiration.

    Takes the Friday nearest to entry_date + dte (ties go to the later Friday), moves back to
    the closest trading day when that Friday is a market holiday, and never returns a date on
    or before entry_date (falls forward to the following Friday instead).
    """
    target = entry_date + timedelta(days=int(dte))
    before = _previous_friday(target)
    after = _next_friday(target)

    if (target - before) < (after - target):
        expiration = before
    else:
        expiration = after
    expiration = previous_trading_day(expiration)

    if expiration <= entry_date:
        expiration = previous_trading_day(_next_friday(entry_date + timedelta(days=1)))
        if expiration <= entry_date:
            expiration = previous_trading_day(_next_friday(entry_date + timedelta(days=8)))

    return expiration
