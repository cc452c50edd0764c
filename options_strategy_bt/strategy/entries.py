"""
Entry gating: frequency rules plus the concurrent-trade cap.
"""

from datetime import date

from ..config.schemas import BacktestConfig
from ..pricing.expirations import calculate_expiration


def frequency_allows(config: BacktestConfig, today: date) -> bool:
    """
    daily:        every trading day
    specificDays: only on configured weekdays (Mon=0..Fri=4); none configured -> never
    exactDTE:     only when the first leg's expiration lands exactly dte calendar days out
    """
    freq = config.entry_conditions.frequency
    if freq == "daily":
        return True
    if freq == "specificDays":
        return today.weekday() in config.entry_conditions.specific_weekdays
    if freq == "exactDTE":
        target_dte = config.legs[0].dte
        return (calculate_expiration(today, target_dte) - today).days == target_dte
    raise ValueError(f"Unknown entry frequency: {freq}")


def should_enter(config: BacktestConfig, today: date, open_trade_count: int) -> bool:
    if open_trade_count >= config.entry_conditions.max_active_trades:
        return False
    return frequency_allows(config, today)
