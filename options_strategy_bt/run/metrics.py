"""
Metrics aggregation over closed trades and daily logs.

Everything here is a pure function of its inputs; every ratio is guarded so that an empty or
degenerate run yields zeros instead of NaN/inf.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from ..portfolio.trades import ClosedTrade, DailyLog

DAYS_PER_YEAR = 365.25


@dataclass
class SummaryMetrics:
    total_profit_loss: float = 0.0
    max_drawdown_percent: float = 0.0
    max_drawdown_date: Optional[str] = None
    used_capital: float = 0.0
    return_on_capital: float = 0.0
    cagr: float = 0.0
    mar_ratio: float = 0.0
    final_net_liquidity: float = 0.0
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    trading_days: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetailMetrics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    profit_rate: float = 0.0
    loss_rate: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    avg_roi: float = 0.0
    avg_days_in_trade: float = 0.0
    avg_buying_power: float = 0.0
    avg_premium: float = 0.0
    avg_win_size: float = 0.0
    avg_loss_size: float = 0.0
    total_premium: float = 0.0
    total_fees: float = 0.0
    close_reasons: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _safe_div(num: float, den: float) -> float:
    if den == 0 or not math.isfinite(den):
        return 0.0
    out = num / den
    return float(out) if math.isfinite(out) else 0.0


def _finite(x: float) -> float:
    x = float(x)
    return x if math.isfinite(x) else 0.0


def trades_frame(trades: Sequence[ClosedTrade]) -> pd.DataFrame:
    cols = ["trade_number", "profit_loss", "roi", "days_in_trade", "buying_power", "net_premium", "fees", "close_reason"]
    if not trades:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame([{c: getattr(t, c) for c in cols} for t in trades])


def daily_logs_frame(logs: Sequence[DailyLog]) -> pd.DataFrame:
    if not logs:
        return pd.DataFrame(columns=list(DailyLog.__dataclass_fields__.keys()))
    return pd.DataFrame([asdict(log) for log in logs])


def compute_used_capital(
    logs: Sequence[DailyLog],
    capital_method: str,
    manual_capital: Optional[float],
    peak_committed: float = 0.0,
) -> float:
    """
    Manual capital, or the peak concurrently committed buying power.

    peak_committed covers trades opened and force-closed on the final bar, which never
    show up as committed in a daily log.
    """
    if capital_method == "manual":
        return float(manual_capital or 0.0)
    logged = max((log.committed_buying_power for log in logs), default=0.0)
    return float(max(logged, peak_committed))


def compute_cagr(used_capital: float, total_pl: float, years: float) -> float:
    """Compound annual growth in percent; total loss of capital is -100"""
    if used_capital <= 0 or years <= 0:
        return 0.0
    ratio = (used_capital + total_pl) / used_capital
    if ratio <= 0:
        return -100.0
    return _finite((ratio ** (1.0 / years) - 1.0) * 100.0)


def compute_summary(
    trades: Sequence[ClosedTrade],
    logs: Sequence[DailyLog],
    capital_method: str = "auto",
    manual_capital: Optional[float] = None,
    peak_committed: float = 0.0,
) -> SummaryMetrics:
    if not logs and not trades:
        return SummaryMetrics(used_capital=compute_used_capital(logs, capital_method, manual_capital, peak_committed))

    df = trades_frame(trades)
    total_pl = _finite(pd.to_numeric(df["profit_loss"]).sum()) if not df.empty else 0.0
    used = compute_used_capital(logs, capital_method, manual_capital, peak_committed)

    max_dd, max_dd_date = 0.0, None
    start, end, years = None, None, 0.0
    if logs:
        dl = daily_logs_frame(logs)
        dd = pd.to_numeric(dl["drawdown_percent"])
        if len(dd) and float(dd.max()) > 0:
            idx = int(dd.values.argmax())
            max_dd = _finite(dd.iloc[idx])
            max_dd_date = logs[idx].date.isoformat()
        start, end = logs[0].date, logs[-1].date
        years = (end - start).days / DAYS_PER_YEAR

    cagr = compute_cagr(used, total_pl, years)

    return SummaryMetrics(
        total_profit_loss=total_pl,
        max_drawdown_percent=max_dd,
        max_drawdown_date=max_dd_date,
        used_capital=used,
        return_on_capital=_safe_div(total_pl, used) * 100.0,
        cagr=cagr,
        mar_ratio=_safe_div(cagr, max_dd),
        final_net_liquidity=used + total_pl,
        start_date=start.isoformat() if start else None,
        end_date=end.isoformat() if end else None,
        trading_days=len(logs),
    )


def compute_details(trades: Sequence[ClosedTrade]) -> DetailMetrics:
    df = trades_frame(trades)
    n = int(len(df))
    if n == 0:
        return DetailMetrics()

    pnl = pd.to_numeric(df["profit_loss"])
    wins = pnl[pnl > 0]
    losses = pnl[pnl <= 0]

    return DetailMetrics(
        total_trades=n,
        winning_trades=int(len(wins)),
        losing_trades=int(len(losses)),
        profit_rate=_safe_div(len(wins), n) * 100.0,
        loss_rate=_safe_div(len(losses), n) * 100.0,
        largest_win=_finite(wins.max()) if len(wins) else 0.0,
        largest_loss=_finite(losses.min()) if len(losses) else 0.0,
        avg_roi=_finite(pd.to_numeric(df["roi"]).mean()),
        avg_days_in_trade=_finite(pd.to_numeric(df["days_in_trade"]).mean()),
        avg_buying_power=_finite(pd.to_numeric(df["buying_power"]).mean()),
        avg_premium=_finite(pd.to_numeric(df["net_premium"]).mean()),
        avg_win_size=_finite(wins.mean()) if len(wins) else 0.0,
        avg_loss_size=_finite(losses.mean()) if len(losses) else 0.0,
        total_premium=_finite(pd.to_numeric(df["net_premium"]).sum()),
        total_fees=_finite(pd.to_numeric(df["fees"]).sum()),
        close_reasons={str(k): int(v) for k, v in df["close_reason"].value_counts().sort_index().items()},
    )


def pnl_history(logs: Sequence[DailyLog]) -> list:
    """Daily cumulative P/L series for charting"""
    return [
        {
            "date": log.date.isoformat(),
            "total_profit_loss": log.total_profit_loss,
            "realized_pl": log.realized_pl,
            "unrealized_pl": log.unrealized_pl,
        }
        for log in logs
    ]

