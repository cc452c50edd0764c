"""
Buying power (margin) requirement for a multi-leg trade.

- Vertical spread present (a short and a long leg of the same option type): the spread's
  max loss, width * 100 * min(qty), is the whole trade's requirement.
- Otherwise each naked short leg uses the standard equity-option margin rule
  max(20% of underlying - OTM amount, 10% of strike/underlying) plus premium.
- Long legs need no margin; the debit is their cost.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..portfolio.trades import CONTRACT_MULTIPLIER, ResolvedLeg


@dataclass
class BuyingPowerBreakdown:
    total: float
    method: str  # "vertical" | "naked" | "long_only"
    per_leg: List[float]


def find_vertical_pair(legs: Sequence[ResolvedLeg]) -> Optional[Tuple[ResolvedLeg, ResolvedLeg]]:
    """First (short, long) pair sharing an option type, in leg order"""
    for short in legs:
        if not short.is_short:
            continue
        for long in legs:
            if not long.is_short and long.option_type == short.option_type:
                return short, long
    return None


def otm_amount(option_type: str, strike: float, underlying_price: float) -> float:
    if option_type == "call":
        return max(strike - underlying_price, 0.0)
    return max(underlying_price - strike, 0.0)


def naked_short_requirement(leg: ResolvedLeg, underlying_price: float) -> float:
    q = leg.quantity
    premium = leg.entry_price * q * CONTRACT_MULTIPLIER
    otm = otm_amount(leg.option_type, leg.resolved_strike, underlying_price)
    method_a = 0.20 * underlying_price * q * CONTRACT_MULTIPLIER - otm * q * CONTRACT_MULTIPLIER + premium
    base = leg.resolved_strike if leg.option_type == "put" else underlying_price
    method_b = 0.10 * base * q * CONTRACT_MULTIPLIER + premium
    return max(method_a, method_b)


def buying_power_breakdown(legs: Sequence[ResolvedLeg], underlying_price: float) -> BuyingPowerBreakdown:
    pair = find_vertical_pair(legs)
    if pair is not None:
        short, long = pair
        width = abs(short.resolved_strike - long.resolved_strike)
        total = width * CONTRACT_MULTIPLIER * min(short.quantity, long.quantity)
        per_leg = [total if leg is short else 0.0 for leg in legs]
        return BuyingPowerBreakdown(total=float(total), method="vertical", per_leg=per_leg)

    per_leg = [naked_short_requirement(leg, underlying_price) if leg.is_short else 0.0 for leg in legs]
    method = "naked" if any(leg.is_short for leg in legs) else "long_only"
    return BuyingPowerBreakdown(total=float(sum(per_leg)), method=method, per_leg=per_leg)


def calculate_buying_power(legs: Sequence[ResolvedLeg], underlying_price: float) -> float:
    """Capital required to hold the trade, in dollars"""
    return buying_power_breakdown(legs, underlying_price).total
