"""
Pricing: Black-Scholes, volatility estimate, strike and expiration selection
"""

from .black_scholes import OptionPrice, black_scholes, option_price, option_delta, intrinsic_value, norm_cdf
from .volatility import estimate_volatility
from .strikes import strike_increment, snap_strike, find_strike_for_delta, resolve_strike
from .expirations import calculate_expiration

__all__ = [
    "OptionPrice",
    "black_scholes",
    "option_price",
    "option_delta",
    "intrinsic_value",
    "norm_cdf",
    "estimate_volatility",
    "strike_increment",
    "snap_strike",
    "find_strike_for_delta",
    "resolve_strike",
    "calculate_expiration",
]
