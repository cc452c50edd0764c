"""
Volatility estimation: realized volatility of daily closes scaled to an implied-vol proxy.
"""

from typing import Sequence

import numpy as np

from ..data.models import PriceBar

TRADING_DAYS_PER_YEAR = 252
VOLATILITY_RISK_PREMIUM = 1.15
MIN_VOLATILITY = 0.10
MAX_VOLATILITY = 1.50
DEFAULT_VOLATILITY = 0.30
DEFAULT_LOOKBACK = 30


def estimate_volatility(
    bars: Sequence[PriceBar],
    lookback: int = DEFAULT_LOOKBACK,
    risk_premium: float = VOLATILITY_RISK_PREMIUM,
    default: float = DEFAULT_VOLATILITY,
) -> float:
    """
    Approximate implied volatility from the bars ending at the slice's last bar.

    Uses up to ``lookback`` log returns of close prices, sample standard deviation (n-1),
    annualized by sqrt(252), scaled by the risk premium and clamped to [0.10, 1.50].

    Args:
        bars: Ascending bars; the last bar is "today"
        lookback: Number of returns to use
        risk_premium: Realized -> implied multiplier
        default: Value returned when fewer than 2 usable returns exist

    Returns:
        Annualized volatility as a decimal
    """
    if len(bars) < 3:
        return float(default)

    closes = np.array([b.close for b in bars[-(lookback + 1):]], dtype=float)
    prev, curr = closes[:-1], closes[1:]
    usable = (prev > 0) & (curr > 0) & np.isfinite(prev) & np.isfinite(curr)
    if usable.sum() < 2:
        return float(default)

    log_returns = np.log(curr[usable] / prev[usable])
    realized = float(np.std(log_returns, ddof=1)) * np.sqrt(TRADING_DAYS_PER_YEAR)
    implied = realized * float(risk_premium)
    return float(min(max(implied, MIN_VOLATILITY), MAX_VOLATILITY))
