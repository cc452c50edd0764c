"""
Tests for the trade lifecycle simulator.
"""

from datetime import date, timedelta

import pytest

from options_strategy_bt.config import BacktestConfig, EngineConfig
from options_strategy_bt.data import trading_days
from options_strategy_bt.errors import BacktestCancelled
from options_strategy_bt.run.simulator import TradeLifecycleSimulator

from conftest import make_bars


def _run(config, bars, **kwargs):
    return TradeLifecycleSimulator(config, **kwargs).run(bars)


def _config(legs, **overrides):
    base = dict(
        symbol="SPY",
        start_date=date(2024, 1, 2),
        end_date=date(2024, 3, 28),
        legs=legs,
        entry_conditions={"frequency": "daily", "max_active_trades": 1},
    )
    base.update(overrides)
    return BacktestConfig(**base)


def test_flat_short_put_expires_worthless(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date, flat=100.0)
    result = _run(short_put_config, bars)

    first = result.trades[0]
    assert first.opened_date == date(2024, 1, 2)
    assert first.expiration_date == date(2024, 2, 2)
    assert first.legs[0].resolved_strike == 95.0
    assert first.close_reason == "expired"
    assert first.closed_date == date(2024, 2, 2)
    assert first.net_premium > 0
    assert first.exit_prices == [0.0]
    assert first.profit_loss == pytest.approx(first.net_premium)
    assert first.fees == 0.0


def test_every_trade_closes_exactly_once(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date, flat=100.0)
    result = _run(short_put_config, bars)

    numbers = [t.trade_number for t in result.trades]
    assert numbers == list(range(1, len(numbers) + 1))
    assert all(t.close_reason == "expired" for t in result.trades[:-1])
    assert result.trades[-1].close_reason == "endOfBacktest"
    assert result.trades[-1].closed_date == bars[-1].date
    # Good Friday 2024-03-29 pulls the third expiry back to Thursday
    assert [t.closed_date for t in result.trades] == [
        date(2024, 2, 2),
        date(2024, 3, 1),
        date(2024, 3, 28),
        date(2024, 3, 28),
    ]


def test_days_in_trade_matches_elapsed_trading_days(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date, closes=[100, 101, 99.5, 100.5, 98])
    result = _run(short_put_config, bars)

    bar_dates = [b.date for b in bars]
    for t in result.trades:
        elapsed = bar_dates.index(t.closed_date) - bar_dates.index(t.opened_date)
        assert t.days_in_trade == elapsed
        assert t.closed_date <= t.expiration_date
        assert t.closed_date <= t.opened_date + timedelta(days=t.legs[0].dte_at_entry)


def test_put_vertical_buying_power():
    config = _config(
        [
            {"direction": "buy", "option_type": "put", "quantity": 2, "strike_selection_method": "priceOffset", "strike_value": 5, "dte": 30},
            {"direction": "sell", "option_type": "put", "quantity": 1, "strike_selection_method": "priceOffset", "strike_value": 0, "dte": 30},
        ]
    )
    bars = make_bars(config.start_date, config.end_date, flat=100.0)
    result = _run(config, bars)

    first = result.trades[0]
    assert [leg.resolved_strike for leg in first.legs] == [95.0, 100.0]
    assert first.buying_power == pytest.approx(5 * 100 * 1)


def test_fees_and_roi():
    config = _config(
        [{"direction": "sell", "option_type": "put", "quantity": 2, "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 30}],
        fee_per_contract=0.65,
    )
    bars = make_bars(config.start_date, config.end_date, flat=100.0)
    first = _run(config, bars).trades[0]

    assert first.fees == pytest.approx(2 * 0.65 * 2)
    assert first.profit_loss == pytest.approx(first.net_premium - first.fees)
    assert first.roi == pytest.approx(first.profit_loss / first.buying_power * 100)


def test_short_put_exercised_when_itm_at_expiry(short_put_config):
    start, end = short_put_config.start_date, short_put_config.end_date
    bars = [b if b.date == start else b.__class__(b.date, 80.0, 80.0, 80.0, 80.0, b.volume) for b in make_bars(start, end)]
    result = _run(short_put_config, bars)

    first = result.trades[0]
    assert first.close_reason == "exercised"
    assert first.exit_prices[0] == pytest.approx(15.0)
    assert first.profit_loss == pytest.approx(first.net_premium - 1500.0)


def test_stop_loss_and_take_profit():
    legs = [{"direction": "sell", "option_type": "put", "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 30}]

    crash = _config(legs, exit_conditions={"stop_loss_percent": 100})
    bars = make_bars(crash.start_date, crash.end_date, flat=100.0)
    bars = bars[:5] + [b.__class__(b.date, 85.0, 85.0, 85.0, 85.0, b.volume) for b in bars[5:]]
    assert _run(crash, bars).trades[0].close_reason == "stopLoss"

    calm = _config(legs, exit_conditions={"take_profit_percent": 50})
    bars = make_bars(calm.start_date, calm.end_date, flat=100.0)
    first = _run(calm, bars).trades[0]
    assert first.close_reason == "takeProfit"
    assert first.closed_date < first.expiration_date


def test_exit_at_dte_and_after_days():
    legs = [{"direction": "sell", "option_type": "call", "strike_selection_method": "delta", "strike_value": 30, "dte": 45}]

    cfg = _config(legs, exit_conditions={"exitAtDTE": 21})
    bars = make_bars(cfg.start_date, cfg.end_date, flat=100.0)
    first = _run(cfg, bars).trades[0]
    assert first.close_reason == "exitAtDTE"
    assert (first.expiration_date - first.closed_date).days <= 21

    cfg = _config(legs, exit_conditions={"exit_after_days": 5, "take_profit_percent": 1})
    first = _run(cfg, bars).trades[0]
    # take-profit may trigger earlier; time exit wins once both apply
    assert first.close_reason in ("exitAfterDays", "takeProfit")
    assert first.days_in_trade <= 5


def test_max_active_trades_cap():
    cfg = _config(
        [{"direction": "sell", "option_type": "put", "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 30}],
        entry_conditions={"frequency": "daily", "max_active_trades": 3},
    )
    bars = make_bars(cfg.start_date, cfg.end_date, flat=100.0)
    result = _run(cfg, bars)

    assert max(log.active_trade_count for log in result.daily_logs) == 3
    assert [log.active_trade_count for log in result.daily_logs[:4]] == [1, 2, 3, 3]


def test_specific_days_entry():
    cfg = _config(
        [{"direction": "sell", "option_type": "put", "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 7}],
        entry_conditions={"frequency": "specificDays", "max_active_trades": 10, "specific_weekdays": ["Wednesday"]},
    )
    bars = make_bars(cfg.start_date, cfg.end_date, flat=100.0)
    result = _run(cfg, bars)

    assert result.trades
    assert all(t.opened_date.weekday() == 2 for t in result.trades)


def test_exact_dte_entry():
    cfg = _config(
        [{"direction": "sell", "option_type": "put", "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 28}],
        entry_conditions={"frequency": "exactDTE", "max_active_trades": 10},
    )
    bars = make_bars(cfg.start_date, cfg.end_date, flat=100.0)
    result = _run(cfg, bars)

    assert result.trades
    for t in result.trades:
        assert (t.expiration_date - t.opened_date).days == 28


def test_daily_log_accounting(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date, closes=[100, 102, 98, 101])
    result = _run(short_put_config, bars)

    assert len(result.daily_logs) == len(bars)
    for log in result.daily_logs:
        assert log.total_profit_loss == pytest.approx(log.realized_pl + log.unrealized_pl)
        assert log.drawdown_percent >= 0
    assert result.max_drawdown_percent == pytest.approx(max(log.drawdown_percent for log in result.daily_logs))


def test_manual_capital_drawdown_uses_committed_buying_power():
    cfg = _config(
        [{"direction": "sell", "option_type": "put", "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 30}],
        capital_method="manual",
        manual_capital=1_000_000,
    )
    bars = make_bars(cfg.start_date, cfg.end_date, closes=[100, 97, 94, 91, 88])
    result = _run(cfg, bars)

    peak = 0.0
    for log in result.daily_logs[:-1]:
        assert log.net_liquidity == pytest.approx(1_000_000 + log.total_profit_loss)
        peak = max(peak, log.total_profit_loss)
        assert log.committed_buying_power > 0
        assert log.drawdown_percent == pytest.approx((peak - log.total_profit_loss) / log.committed_buying_power * 100.0)
    # a 12% slide against a 5% OTM short put is a large share of the margin, not of the account
    assert result.max_drawdown_percent > 10.0


def test_progress_reports(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date)
    seen = []
    _run(short_put_config, bars, engine=EngineConfig(progress_every_days=10), progress_callback=seen.append)

    assert seen == sorted(seen)
    assert seen[-1] == pytest.approx(100.0)
    assert len(seen) == len(bars) // 10 + (1 if len(bars) % 10 else 0)


def test_cancellation_stops_loop(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date)
    polls = []

    def should_cancel():
        polls.append(1)
        return len(polls) > 3

    sim = TradeLifecycleSimulator(short_put_config, should_cancel=should_cancel)
    with pytest.raises(BacktestCancelled):
        sim.run(bars)
    assert len(sim.daily_logs) == 3


def test_deterministic_runs(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date, closes=[100, 101.5, 99, 102, 97.5, 100])
    a = _run(short_put_config, bars)
    b = _run(short_put_config, bars)

    assert [t.to_dict() for t in a.trades] == [t.to_dict() for t in b.trades]
    assert [d.to_dict() for d in a.daily_logs] == [d.to_dict() for d in b.daily_logs]


def test_no_bars_produces_nothing(short_put_config):
    result = _run(short_put_config, [])
    assert result.trades == []
    assert result.daily_logs == []


def test_trading_days_helper_matches_bar_count(short_put_config):
    bars = make_bars(short_put_config.start_date, short_put_config.end_date)
    assert len(bars) == len(trading_days(short_put_config.start_date, short_put_config.end_date))


def test_final_log_includes_end_of_backtest_closes():
    cfg = _config(
        [{"direction": "sell", "option_type": "put", "quantity": 2, "strike_selection_method": "percentOTM", "strike_value": 5, "dte": 30}],
        end_date=date(2024, 1, 19),
        fee_per_contract=1.0,
    )
    bars = make_bars(cfg.start_date, cfg.end_date, closes=[100, 101, 103])
    result = _run(cfg, bars)

    assert [t.close_reason for t in result.trades] == ["endOfBacktest"]
    assert result.trades[0].fees == pytest.approx(4.0)
    last = result.daily_logs[-1]
    assert last.date == bars[-1].date
    assert last.active_trade_count == 0
    assert last.unrealized_pl == 0.0
    assert last.committed_buying_power == 0.0
    assert last.total_profit_loss == pytest.approx(sum(t.profit_loss for t in result.trades))
    assert len(result.daily_logs) == len(bars)
    assert result.max_drawdown_percent == pytest.approx(max(log.drawdown_percent for log in result.daily_logs))
    assert result.peak_committed_buying_power == pytest.approx(result.trades[0].buying_power)
