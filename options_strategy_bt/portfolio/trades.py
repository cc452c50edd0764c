"""
Trade records for the lifecycle simulator:
- resolved legs (strike/price fixed at entry)
- open trades with their mutable days-in-trade counter
- closed trades with exit prices, fees, P/L and close reason
- daily portfolio snapshots
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from ..config.schemas import LegConfig
from ..pricing.black_scholes import RISK_FREE_RATE, intrinsic_value, option_price

CONTRACT_MULTIPLIER = 100

CloseReason = Literal[
    "expired",
    "exercised",
    "exitAtDTE",
    "exitAfterDays",
    "takeProfit",
    "stopLoss",
    "endOfBacktest",
]

EXPIRED: CloseReason = "expired"
EXERCISED: CloseReason = "exercised"
EXIT_AT_DTE: CloseReason = "exitAtDTE"
EXIT_AFTER_DAYS: CloseReason = "exitAfterDays"
TAKE_PROFIT: CloseReason = "takeProfit"
STOP_LOSS: CloseReason = "stopLoss"
END_OF_BACKTEST: CloseReason = "endOfBacktest"


@dataclass(frozen=True)
class ResolvedLeg:
    leg_config: LegConfig
    resolved_strike: float
    entry_price: float
    dte_at_entry: int
    expiration_date: date

    @property
    def option_type(self) -> str:
        return self.leg_config.option_type

    @property
    def quantity(self) -> int:
        return int(self.leg_config.quantity)

    @property
    def is_short(self) -> bool:
        return self.leg_config.direction == "sell"

    @property
    def sign(self) -> int:
        """+1 for short legs (premium received), -1 for long legs"""
        return 1 if self.is_short else -1

    def dte_on(self, today: date) -> int:
        return (self.expiration_date - today).days

    def value_on(self, today: date, spot: float, volatility: float, r: float = RISK_FREE_RATE) -> float:
        """Per-share model value: Black-Scholes while DTE > 0, intrinsic afterwards"""
        dte = self.dte_on(today)
        if dte <= 0:
            return intrinsic_value(self.option_type, spot, self.resolved_strike)
        return option_price(self.option_type, spot, self.resolved_strike, dte, volatility, r)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.leg_config.direction,
            "option_type": self.option_type,
            "quantity": self.quantity,
            "strike_selection_method": self.leg_config.strike_selection_method,
            "strike_value": self.leg_config.strike_value,
            "resolved_strike": self.resolved_strike,
            "entry_price": self.entry_price,
            "dte_at_entry": self.dte_at_entry,
            "expiration_date": self.expiration_date.isoformat(),
        }


def signed_value(legs: List[ResolvedLeg], prices: List[float]) -> float:
    """Signed dollar value of legs at per-share prices (credit positive)"""
    return float(sum(leg.sign * px * leg.quantity * CONTRACT_MULTIPLIER for leg, px in zip(legs, prices)))


@dataclass
class ActiveTrade:
    trade_number: int
    opened_date: date
    expiration_date: date
    legs: List[ResolvedLeg]
    net_premium: float
    buying_power: float
    underlying_price_at_open: float
    days_in_trade: int = 0

    @property
    def contracts(self) -> int:
        return sum(leg.quantity for leg in self.legs)

    def dte_on(self, today: date) -> int:
        """Calendar days until the earliest leg expiration"""
        return (self.expiration_date - today).days

    def leg_prices(self, today: date, spot: float, volatility: float, r: float = RISK_FREE_RATE) -> List[float]:
        return [leg.value_on(today, spot, volatility, r) for leg in self.legs]

    def exit_value(self, today: date, spot: float, volatility: float, r: float = RISK_FREE_RATE) -> float:
        """Signed dollar value to close the trade now (same sign convention as net_premium)"""
        return signed_value(self.legs, self.leg_prices(today, spot, volatility, r))

    def unrealized_pl(self, today: date, spot: float, volatility: float, r: float = RISK_FREE_RATE) -> float:
        """Mark-to-model P/L before fees"""
        return self.net_premium - self.exit_value(today, spot, volatility, r)


@dataclass
class ClosedTrade:
    trade_number: int
    opened_date: date
    expiration_date: date
    legs: List[ResolvedLeg]
    net_premium: float
    buying_power: float
    underlying_price_at_open: float
    days_in_trade: int
    closed_date: date
    exit_prices: List[float]
    fees: float
    profit_loss: float
    close_reason: CloseReason
    roi: float
    underlying_price_at_close: float

    @property
    def is_win(self) -> bool:
        return self.profit_loss > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_number": self.trade_number,
            "opened_date": self.opened_date.isoformat(),
            "closed_date": self.closed_date.isoformat(),
            "expiration_date": self.expiration_date.isoformat(),
            "days_in_trade": self.days_in_trade,
            "net_premium": self.net_premium,
            "buying_power": self.buying_power,
            "fees": self.fees,
            "profit_loss": self.profit_loss,
            "roi": self.roi,
            "close_reason": self.close_reason,
            "underlying_price_at_open": self.underlying_price_at_open,
            "underlying_price_at_close": self.underlying_price_at_close,
            "legs": [leg.to_dict() for leg in self.legs],
            "exit_prices": list(self.exit_prices),
        }


def close_trade(
    trade: ActiveTrade,
    closed_date: date,
    spot: float,
    volatility: float,
    reason: CloseReason,
    fee_per_contract: float,
    r: float = RISK_FREE_RATE,
) -> ClosedTrade:
    """
    Price every leg at the close and build the terminal record.

    An ``expired`` close where any leg still has intrinsic value is reported as ``exercised``.
    """
    exit_prices = trade.leg_prices(closed_date, spot, volatility, r)
    exit_net_value = signed_value(trade.legs, exit_prices)
    fees = trade.contracts * float(fee_per_contract) * 2
    profit_loss = trade.net_premium - exit_net_value - fees

    if reason == EXPIRED and any(
        intrinsic_value(leg.option_type, spot, leg.resolved_strike) > 0 for leg in trade.legs
    ):
        reason = EXERCISED

    roi = (profit_loss / trade.buying_power * 100.0) if trade.buying_power > 0 else 0.0

    return ClosedTrade(
        trade_number=trade.trade_number,
        opened_date=trade.opened_date,
        expiration_date=trade.expiration_date,
        legs=list(trade.legs),
        net_premium=trade.net_premium,
        buying_power=trade.buying_power,
        underlying_price_at_open=trade.underlying_price_at_open,
        days_in_trade=trade.days_in_trade,
        closed_date=closed_date,
        exit_prices=exit_prices,
        fees=fees,
        profit_loss=profit_loss,
        close_reason=reason,
        roi=roi,
        underlying_price_at_close=float(spot),
    )


@dataclass
class DailyLog:
    date: date
    underlying_price: float
    total_profit_loss: float
    realized_pl: float
    unrealized_pl: float
    net_liquidity: float
    drawdown_percent: float
    roi: float
    active_trade_count: int
    committed_buying_power: float
    volatility: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "underlying_price": self.underlying_price,
            "total_profit_loss": self.total_profit_loss,
            "realized_pl": self.realized_pl,
            "unrealized_pl": self.unrealized_pl,
            "net_liquidity": self.net_liquidity,
            "drawdown_percent": self.drawdown_percent,
            "roi": self.roi,
            "active_trade_count": self.active_trade_count,
            "committed_buying_power": self.committed_buying_power,
            "volatility": self.volatility,
        }
