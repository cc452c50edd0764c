"""
Trade lifecycle simulator: the day-by-day state machine.

Each trading day, in order:
1. days_in_trade += 1 for every open trade
2. exit rules (first match wins)
3. close qualifying trades, accumulate realized P/L
4. entry rules, open at most one new trade
5. reprice open trades for unrealized P/L
6. peak P/L and drawdown against committed buying power
7. daily snapshot + periodic progress report

Trades still open after the last bar are closed at that bar with ``endOfBacktest`` and that
bar's snapshot is re-issued, so the final log agrees with the closed trades.
The loop is pure computation over the bars it is given; the same inputs always produce the
same trades and logs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence

from ..config.schemas import BacktestConfig, EngineConfig
from ..data.models import PriceBar
from ..errors import BacktestCancelled
from ..portfolio.trades import (
    END_OF_BACKTEST,
    ActiveTrade,
    ClosedTrade,
    DailyLog,
    ResolvedLeg,
    close_trade,
    signed_value,
)
from ..pricing.black_scholes import option_price
from ..pricing.expirations import calculate_expiration
from ..pricing.strikes import resolve_strike
from ..pricing.volatility import estimate_volatility
from ..risk.buying_power import calculate_buying_power
from ..strategy.entries import should_enter
from ..strategy.exits import evaluate_exit

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]


@dataclass
class SimulationResult:
    trades: List[ClosedTrade] = field(default_factory=list)
    daily_logs: List[DailyLog] = field(default_factory=list)
    max_drawdown_percent: float = 0.0
    max_drawdown_date: Optional[date] = None
    peak_committed_buying_power: float = 0.0


class TradeLifecycleSimulator:
    """
    Runs one strategy template over a bar series.

    Args:
        config: Strategy template, entry/exit rules, capital and fees
        engine: Pricing/volatility constants and progress interval
        progress_callback: Called with percent of days processed (0-100)
        should_cancel: Checked once per day; True aborts with BacktestCancelled
    """

    def __init__(
        self,
        config: BacktestConfig,
        engine: Optional[EngineConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
        should_cancel: Optional[CancelCheck] = None,
    ):
        self.config = config
        self.engine = engine or EngineConfig()
        self.progress_callback = progress_callback
        self.should_cancel = should_cancel

        self.open_trades: List[ActiveTrade] = []
        self.closed_trades: List[ClosedTrade] = []
        self.daily_logs: List[DailyLog] = []
        self.realized_pl = 0.0
        self._next_trade_number = 1
        self._peak_pl = 0.0
        self._peak_committed = 0.0
        self._max_drawdown = 0.0
        self._max_drawdown_date: Optional[date] = None

    @property
    def r(self) -> float:
        return float(self.engine.risk_free_rate)

    def _volatility(self, bars: Sequence[PriceBar], idx: int) -> float:
        return estimate_volatility(
            bars[: idx + 1],
            lookback=self.engine.volatility_lookback,
            risk_premium=self.engine.volatility_risk_premium,
            default=self.engine.default_volatility,
        )

    def open_trade(self, today: date, spot: float, volatility: float) -> ActiveTrade:
        """Resolve every leg at today's close and build a new open trade"""
        legs: List[ResolvedLeg] = []
        for leg_cfg in self.config.legs:
            expiration = calculate_expiration(today, leg_cfg.dte)
            leg_dte = (expiration - today).days
            strike = resolve_strike(
                leg_cfg.option_type,
                leg_cfg.strike_selection_method,
                leg_cfg.strike_value,
                spot,
                leg_dte,
                volatility,
                self.r,
            )
            entry_price = option_price(leg_cfg.option_type, spot, strike, leg_dte, volatility, self.r)
            legs.append(
                ResolvedLeg(
                    leg_config=leg_cfg,
                    resolved_strike=strike,
                    entry_price=entry_price,
                    dte_at_entry=leg_dte,
                    expiration_date=expiration,
                )
            )

        trade = ActiveTrade(
            trade_number=self._next_trade_number,
            opened_date=today,
            expiration_date=min(leg.expiration_date for leg in legs),
            legs=legs,
            net_premium=signed_value(legs, [leg.entry_price for leg in legs]),
            buying_power=calculate_buying_power(legs, spot),
            underlying_price_at_open=float(spot),
        )
        self._next_trade_number += 1
        logger.debug(
            f"Opened trade #{trade.trade_number} on {today}: strikes="
            f"{[leg.resolved_strike for leg in legs]} premium={trade.net_premium:.2f} bp={trade.buying_power:.2f}"
        )
        return trade

    def _close(self, trade: ActiveTrade, today: date, spot: float, volatility: float, reason) -> ClosedTrade:
        closed = close_trade(trade, today, spot, volatility, reason, self.config.fee_per_contract, self.r)
        self.open_trades.remove(trade)
        self.closed_trades.append(closed)
        self.realized_pl += closed.profit_loss
        logger.debug(f"Closed trade #{closed.trade_number} on {today}: {closed.close_reason} pnl={closed.profit_loss:.2f}")
        return closed

    def _drawdown_basis(self, committed: float) -> float:
        # committed buying power in either capital mode
        if committed > 0:
            return committed
        return self._peak_committed

    def _capital_base(self) -> float:
        if self.config.capital_method == "manual":
            return float(self.config.manual_capital or 0.0)
        return self._peak_committed

    def _snapshot(self, today: date, spot: float, volatility: float) -> DailyLog:
        """Mark open trades to market and build the day's log"""
        unrealized = sum(t.unrealized_pl(today, spot, volatility, self.r) for t in self.open_trades)
        total = self.realized_pl + unrealized
        committed = sum(t.buying_power for t in self.open_trades)
        self._peak_committed = max(self._peak_committed, committed)

        self._peak_pl = max(self._peak_pl, total)
        basis = self._drawdown_basis(committed)
        drawdown = (self._peak_pl - total) / basis * 100.0 if basis > 0 else 0.0

        capital = self._capital_base()
        return DailyLog(
            date=today,
            underlying_price=spot,
            total_profit_loss=total,
            realized_pl=self.realized_pl,
            unrealized_pl=unrealized,
            net_liquidity=capital + total,
            drawdown_percent=drawdown,
            roi=total / capital * 100.0 if capital > 0 else 0.0,
            active_trade_count=len(self.open_trades),
            committed_buying_power=committed,
            volatility=volatility,
        )

    def _track_drawdown(self, log: DailyLog) -> None:
        if log.drawdown_percent > self._max_drawdown:
            self._max_drawdown = log.drawdown_percent
            self._max_drawdown_date = log.date

    def step(self, bars: Sequence[PriceBar], idx: int) -> DailyLog:
        """Simulate one trading day (bars[idx]) and return its snapshot"""
        bar = bars[idx]
        today, spot = bar.date, float(bar.close)
        volatility = self._volatility(bars, idx)

        for trade in self.open_trades:
            trade.days_in_trade += 1

        for trade in list(self.open_trades):
            reason = evaluate_exit(trade, today, spot, volatility, self.config.exit_conditions, self.r)
            if reason is not None:
                self._close(trade, today, spot, volatility, reason)

        if should_enter(self.config, today, len(self.open_trades)):
            self.open_trades.append(self.open_trade(today, spot, volatility))

        log = self._snapshot(today, spot, volatility)
        self._track_drawdown(log)
        self.daily_logs.append(log)
        return log

    def _close_remaining(self, bars: Sequence[PriceBar]) -> None:
        """Close leftovers at the last bar and re-issue that day's log to include them"""
        last = bars[-1]
        spot = float(last.close)
        volatility = self._volatility(bars, len(bars) - 1)
        for trade in list(self.open_trades):
            self._close(trade, last.date, spot, volatility, END_OF_BACKTEST)

        self.daily_logs[-1] = self._snapshot(last.date, spot, volatility)
        self._max_drawdown, self._max_drawdown_date = 0.0, None
        for log in self.daily_logs:
            self._track_drawdown(log)

    def run(self, bars: Sequence[PriceBar]) -> SimulationResult:
        n = len(bars)
        every = max(1, int(self.engine.progress_every_days))

        for idx in range(n):
            if self.should_cancel is not None and self.should_cancel():
                logger.info(f"Cancellation requested at {bars[idx].date}, stopping")
                raise BacktestCancelled()

            self.step(bars, idx)

            processed = idx + 1
            if self.progress_callback is not None and (processed % every == 0 or processed == n):
                self.progress_callback(processed / n * 100.0)

        if n and self.open_trades:
            self._close_remaining(bars)

        logger.info(
            f"Simulation finished: {n} days, {len(self.closed_trades)} trades, "
            f"realized P/L {self.realized_pl:.2f}, max drawdown {self._max_drawdown:.2f}%"
        )
        return SimulationResult(
            trades=list(self.closed_trades),
            daily_logs=list(self.daily_logs),
            max_drawdown_percent=self._max_drawdown,
            max_drawdown_date=self._max_drawdown_date,
            peak_committed_buying_power=self._peak_committed,
        )
