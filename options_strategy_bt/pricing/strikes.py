"""
Strike resolution: turn a leg's selection method into a concrete, listed-looking strike.
"""

import logging
import math

from .black_scholes import RISK_FREE_RATE, OptionType, option_delta

logger = logging.getLogger(__name__)

DELTA_SEARCH_ITERATIONS = 50
DELTA_TOLERANCE = 0.001
PREMIUM_FALLBACK_DELTA = 30.0


def strike_increment(price: float) -> float:
    """Listed strike spacing for an underlying price level"""
    if price < 25:
        return 0.5
    if price < 50:
        return 1.0
    if price < 200:
        return 2.5
    return 5.0


def snap_strike(strike: float, underlying_price: float) -> float:
    """Round half-up to the nearest increment; never returns a non-positive strike."""
    inc = strike_increment(underlying_price)
    snapped = math.floor(strike / inc + 0.5) * inc
    if snapped <= 0:
        return inc
    return round(snapped, 4)


def normalize_target_delta(target: float) -> float:
    """Accept 30 or 0.30 style targets; always returns a positive fraction"""
    target = abs(float(target))
    if target > 1:
        target /= 100.0
    return target


def find_strike_for_delta(
    option_type: OptionType,
    underlying_price: float,
    target_delta: float,
    dte: float,
    volatility: float,
    r: float = RISK_FREE_RATE,
) -> float:
    """
    Bisection search over [0.5*S, 1.5*S] for the strike whose |delta| matches the target.

    Call delta falls as strike rises; put |delta| rises as strike rises.

    Returns:
        Unsnapped strike
    """
    target = normalize_target_delta(target_delta)
    low, high = 0.5 * underlying_price, 1.5 * underlying_price
    mid = (low + high) / 2.0

    for _ in range(DELTA_SEARCH_ITERATIONS):
        mid = (low + high) / 2.0
        delta = abs(option_delta(option_type, underlying_price, mid, dte, volatility, r))
        if abs(delta - target) < DELTA_TOLERANCE:
            break
        if option_type == "call":
            # too much delta -> strike too low
            if delta > target:
                low = mid
            else:
                high = mid
        else:
            if delta > target:
                high = mid
            else:
                low = mid

    return mid


def resolve_strike(
    option_type: OptionType,
    method: str,
    value: float,
    underlying_price: float,
    dte: float,
    volatility: float,
    r: float = RISK_FREE_RATE,
) -> float:
    """
    Resolve and snap a strike for a leg.

    Methods:
        delta: target |delta| (30 or 0.30)
        percentOTM: S +/- S * value / 100 (up for calls, down for puts)
        priceOffset: S +/- value
        premium: not modelled directly, resolved as a 30 delta strike
    """
    if method == "delta":
        raw = find_strike_for_delta(option_type, underlying_price, value, dte, volatility, r)
    elif method == "percentOTM":
        offset = underlying_price * float(value) / 100.0
        raw = underlying_price + offset if option_type == "call" else underlying_price - offset
    elif method == "priceOffset":
        raw = underlying_price + float(value) if option_type == "call" else underlying_price - float(value)
    elif method == "premium":
        raw = find_strike_for_delta(option_type, underlying_price, PREMIUM_FALLBACK_DELTA, dte, volatility, r)
    else:
        raise ValueError(f"Unknown strike selection method: {method}")

    return snap_strike(raw, underlying_price)
