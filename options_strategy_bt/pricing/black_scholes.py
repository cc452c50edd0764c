"""Black-Scholes option pricing for daily backtesting.

Uses math.erf for the normal CDF (no scipy dependency). Time to expiry is
calendar DTE / 365 and the risk-free rate is a constant.

Degenerate inputs (T <= 0, or spot/strike/vol <= 0) never raise: prices fall
back to intrinsic value and delta to its expiry limit.
"""

import math
from dataclasses import dataclass
from typing import Literal

OptionType = Literal["call", "put"]

RISK_FREE_RATE = 0.05
DAYS_PER_YEAR = 365.0


def norm_cdf(x: float) -> float:
    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def intrinsic_value(option_type: OptionType, spot: float, strike: float) -> float:
    if option_type == "call":
        return max(spot - strike, 0.0)
    return max(strike - spot, 0.0)


def _is_degenerate(spot: float, strike: float, T: float, sigma: float) -> bool:
    return T <= 0 or spot <= 0 or strike <= 0 or sigma <= 0


def _d1_d2(spot: float, strike: float, T: float, sigma: float, r: float):
    sqrt_T = math.sqrt(T)
    d1 = (math.log(spot / strike) + (r + 0.5 * sigma * sigma) * T) / (sigma * sqrt_T)
    return d1, d1 - sigma * sqrt_T


@dataclass
class OptionPrice:
    price: float
    delta: float


def black_scholes(
    option_type: OptionType,
    spot: float,
    strike: float,
    dte: float,
    volatility: float,
    r: float = RISK_FREE_RATE,
) -> OptionPrice:
    """Price a European option and its delta.

    Args:
        option_type: "call" or "put"
        spot: underlying price
        strike: strike price
        dte: calendar days to expiration (T = dte / 365)
        volatility: annualized volatility as decimal (e.g. 0.25)
        r: risk-free rate
    """
    T = dte / DAYS_PER_YEAR
    if _is_degenerate(spot, strike, T, volatility):
        if option_type == "call":
            return OptionPrice(price=intrinsic_value("call", spot, strike), delta=1.0 if spot > strike else 0.0)
        return OptionPrice(price=intrinsic_value("put", spot, strike), delta=-1.0 if spot < strike else 0.0)

    d1, d2 = _d1_d2(spot, strike, T, volatility, r)
    discount = math.exp(-r * T)

    if option_type == "call":
        price = spot * norm_cdf(d1) - strike * discount * norm_cdf(d2)
        delta = norm_cdf(d1)
    else:
        price = strike * discount * norm_cdf(-d2) - spot * norm_cdf(-d1)
        delta = norm_cdf(d1) - 1.0

    return OptionPrice(price=price, delta=delta)


def option_price(
    option_type: OptionType,
    spot: float,
    strike: float,
    dte: float,
    volatility: float,
    r: float = RISK_FREE_RATE,
) -> float:
    """Quick helper: theoretical option price"""
    return black_scholes(option_type, spot, strike, dte, volatility, r).price


def option_delta(
    option_type: OptionType,
    spot: float,
    strike: float,
    dte: float,
    volatility: float,
    r: float = RISK_FREE_RATE,
) -> float:
    """Quick helper: option delta (call in [0, 1], put in [-1, 0])"""
    return black_scholes(option_type, spot, strike, dte, volatility, r).delta
