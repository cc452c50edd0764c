"""
Exit rules for open trades.

Rules are checked in a fixed order and the first match wins:
expired -> exitAtDTE -> exitAfterDays -> takeProfit -> stopLoss.
Take-profit and stop-loss thresholds are percentages of |net premium|.
"""

from datetime import date
from typing import Optional

from ..config.schemas import ExitConditions
from ..pricing.black_scholes import RISK_FREE_RATE
from ..portfolio.trades import (
    EXIT_AFTER_DAYS,
    EXIT_AT_DTE,
    EXPIRED,
    STOP_LOSS,
    TAKE_PROFIT,
    ActiveTrade,
    CloseReason,
)


def evaluate_exit(
    trade: ActiveTrade,
    today: date,
    spot: float,
    volatility: float,
    exits: ExitConditions,
    r: float = RISK_FREE_RATE,
) -> Optional[CloseReason]:
    """
    Returns:
        Close reason for the first rule that triggers, or None to keep the trade open
    """
    dte = trade.dte_on(today)
    if dte <= 0:
        return EXPIRED
    if exits.exit_at_dte is not None and dte <= exits.exit_at_dte:
        return EXIT_AT_DTE
    if exits.exit_after_days is not None and trade.days_in_trade >= exits.exit_after_days:
        return EXIT_AFTER_DAYS

    if exits.take_profit_percent is None and exits.stop_loss_percent is None:
        return None
    basis = abs(trade.net_premium)
    if basis <= 0:
        return None

    pnl = trade.unrealized_pl(today, spot, volatility, r)
    if exits.take_profit_percent is not None and pnl >= basis * exits.take_profit_percent / 100.0:
        return TAKE_PROFIT
    if exits.stop_loss_percent is not None and pnl <= -basis * exits.stop_loss_percent / 100.0:
        return STOP_LOSS
    return None
