"""
Continuous strategy valuation walk.

A fixed position (strikes and premiums already known) is repriced at every daily close up to
expiration with one volatility. There is no trade lifecycle here: nothing opens or closes,
it only answers "what would this position have been worth along this price path".
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Literal, Optional, Sequence

import numpy as np

from ..data.models import PriceBar
from ..errors import NoPriceDataError
from ..pricing.black_scholes import RISK_FREE_RATE, option_price

CONTRACT_MULTIPLIER = 100
TRADING_DAYS_PER_YEAR = 252


@dataclass
class WalkLeg:
    option_type: Literal["call", "put"]
    position: Literal["long", "short"]
    strike: float
    quantity: int = 1
    premium: float = 0.0
    expiration_days: int = 30
    excluded: bool = False
    closed_quantity: int = 0

    @property
    def open_quantity(self) -> int:
        if self.excluded:
            return 0
        return max(int(self.quantity) - int(self.closed_quantity), 0)

    @property
    def sign(self) -> int:
        return 1 if self.position == "long" else -1


@dataclass
class WalkPoint:
    date: date
    underlying_price: float
    strategy_value: float
    pnl: float
    pnl_percent: float
    days_to_expiration: int

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d


@dataclass
class WalkMetrics:
    total_return: float = 0.0
    total_return_percent: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    max_gain: float = 0.0
    win_rate: float = 0.0
    sharpe_ratio: float = 0.0
    avg_daily_return: float = 0.0
    volatility: float = 0.0
    days_in_trade: int = 0


@dataclass
class WalkResult:
    points: List[WalkPoint] = field(default_factory=list)
    metrics: WalkMetrics = field(default_factory=WalkMetrics)
    max_risk: float = 1.0
    entry_value: float = 0.0


def position_value(legs: Sequence[WalkLeg], spot: float, dte: int, volatility: float, r: float = RISK_FREE_RATE) -> float:
    """Dollar value of the open quantity (long positive, short negative)"""
    total = 0.0
    for leg in legs:
        qty = leg.open_quantity
        if qty <= 0:
            continue
        px = option_price(leg.option_type, spot, leg.strike, max(0, dte), volatility, r)
        total += leg.sign * px * qty * CONTRACT_MULTIPLIER
    return total


def entry_value(legs: Sequence[WalkLeg]) -> float:
    """Position value at the entry premiums, same sign convention as position_value"""
    return float(sum(leg.sign * leg.premium * leg.open_quantity * CONTRACT_MULTIPLIER for leg in legs))


def max_risk(legs: Sequence[WalkLeg], entry_underlying_price: float) -> float:
    """
    Rough capital at risk: debit for longs, underlying notional for short calls, strike
    notional for short puts. Never zero.
    """
    risk = 0.0
    for leg in legs:
        qty = leg.open_quantity
        if qty <= 0:
            continue
        if leg.position == "long":
            risk += leg.premium * qty * CONTRACT_MULTIPLIER
        elif leg.option_type == "call":
            risk += entry_underlying_price * qty * CONTRACT_MULTIPLIER
        else:
            risk += leg.strike * qty * CONTRACT_MULTIPLIER
    return abs(risk) or 1.0


def walk_strategy_value(
    legs: Sequence[WalkLeg],
    bars: Sequence[PriceBar],
    entry_underlying_price: float,
    volatility: float,
    start_date: date,
    expiration_date: Optional[date] = None,
    r: float = RISK_FREE_RATE,
    symbol: str = "underlying",
) -> WalkResult:
    """
    Reprice the position at each bar close.

    Expiration defaults to start_date + the first leg's expiration_days. DTE at each bar is
    the whole number of days left, floored at 0 (intrinsic value from then on).

    Raises:
        NoPriceDataError: bars is empty
    """
    if not bars:
        raise NoPriceDataError(symbol, start_date, expiration_date or start_date)

    if expiration_date is None:
        first_days = legs[0].expiration_days if legs else 30
        expiration_date = start_date + timedelta(days=int(first_days))

    entry = entry_value(legs)
    risk = max_risk(legs, entry_underlying_price)

    points: List[WalkPoint] = []
    values: List[float] = []
    for bar in bars:
        dte = max(0, (expiration_date - bar.date).days)
        value = position_value(legs, bar.close, dte, volatility, r)
        pnl = value - entry
        points.append(
            WalkPoint(
                date=bar.date,
                underlying_price=float(bar.close),
                strategy_value=value,
                pnl=pnl,
                pnl_percent=pnl / risk * 100.0,
                days_to_expiration=dte,
            )
        )
        values.append(value)

    return WalkResult(points=points, metrics=_walk_metrics(entry, values, points, risk), max_risk=risk, entry_value=entry)


def _walk_metrics(entry: float, values: List[float], points: List[WalkPoint], risk: float) -> WalkMetrics:
    series = np.array(values, dtype=float)
    pnl = np.array([p.pnl for p in points], dtype=float)

    peaks = np.maximum.accumulate(np.concatenate(([entry], series)))[1:]
    max_drawdown = float(np.max(peaks - series)) if len(series) else 0.0
    max_drawdown = max(max_drawdown, 0.0)

    prev = np.concatenate(([entry], series[:-1]))
    nonzero = prev != 0
    daily_returns = (series[nonzero] - prev[nonzero]) / np.abs(prev[nonzero])

    avg = float(daily_returns.mean()) if len(daily_returns) else 0.0
    vol = float(np.std(daily_returns, ddof=1)) * np.sqrt(TRADING_DAYS_PER_YEAR) if len(daily_returns) > 1 else 0.0
    sharpe = (avg * TRADING_DAYS_PER_YEAR) / vol if vol > 0 else 0.0

    total_return = float(pnl[-1]) if len(pnl) else 0.0
    return WalkMetrics(
        total_return=total_return,
        total_return_percent=total_return / risk * 100.0,
        max_drawdown=max_drawdown,
        max_drawdown_percent=max_drawdown / risk * 100.0,
        max_gain=max(float(pnl.max()), 0.0) if len(pnl) else 0.0,
        win_rate=float((pnl > 0).sum()) / len(pnl) * 100.0 if len(pnl) else 0.0,
        sharpe_ratio=float(sharpe),
        avg_daily_return=avg * 100.0,
        volatility=float(vol) * 100.0,
        days_in_trade=len(points),
    )
