"""
End-to-end tests for run_backtest: cache-backed bars, metrics, sinks and artifacts.
"""

import json
from datetime import date

import pytest

from options_strategy_bt.config import RunConfig
from options_strategy_bt.data import HistoricalPriceProvider, SQLitePriceCache
from options_strategy_bt.run import LoggingProgressSink, RunRecordSink, RunRecordStore, run_backtest

from conftest import make_bars


def _prefill(config: RunConfig, closes=None):
    bt = config.backtest
    bars = make_bars(bt.start_date, bt.end_date, closes=closes)
    with SQLitePriceCache(config.data.cache_path) as cache:
        cache.insert_bars(bt.symbol, bars)
    return bars


def test_no_price_data_is_reported_as_error(run_config):
    sink = LoggingProgressSink("SPY")
    result = run_backtest(run_config, sink=sink)

    assert result.status == "error"
    assert not result.ok
    assert "SPY" in result.error
    assert result.trades == []
    assert result.daily_logs == []
    assert result.summary == {}


def test_completed_run_from_cache(run_config):
    bars = _prefill(run_config, closes=[100, 101, 99.5, 100.5])
    sink = LoggingProgressSink("SPY")

    result = run_backtest(run_config, sink=sink)

    assert result.ok, result.error
    assert result.run_dir is None
    assert len(result.price_history) == len(bars)
    assert len(result.daily_logs) == len(bars)
    assert len(result.pnl_history) == len(bars)
    assert result.trades
    assert result.trades[-1]["close_reason"] == "endOfBacktest"
    assert result.summary["total_profit_loss"] == pytest.approx(sum(t["profit_loss"] for t in result.trades))
    assert result.details["total_trades"] == len(result.trades)
    assert sink.last_percent == pytest.approx(100.0)


def test_explicit_provider_is_used(run_config, tmp_path):
    bt = run_config.backtest
    cache = SQLitePriceCache(str(tmp_path / "other.db"))
    cache.insert_bars(bt.symbol, make_bars(bt.start_date, bt.end_date))
    provider = HistoricalPriceProvider(cache, today=date(2024, 12, 31))

    result = run_backtest(run_config, provider=provider)

    assert result.ok
    # caller-owned provider stays usable
    assert cache.get_bars(bt.symbol, bt.start_date, bt.end_date)
    cache.close()


def test_repeat_runs_are_identical(run_config):
    _prefill(run_config, closes=[100, 102, 98.5, 101, 99])
    a = run_backtest(run_config, run_id_mode="deterministic")
    b = run_backtest(run_config, run_id_mode="deterministic")

    assert a.run_id == b.run_id
    assert a.trades == b.trades
    assert a.summary == b.summary
    assert a.daily_logs == b.daily_logs


def test_run_record_sink_completed(run_config, tmp_path):
    _prefill(run_config)
    with RunRecordStore(str(tmp_path / "records.db")) as store:
        run_id = store.create_run("SPY")
        result = run_backtest(run_config, sink=RunRecordSink(store, run_id))
        row = store.get_run(run_id)

    assert result.ok
    assert row["status"] == "completed"
    assert row["progress"] == 100.0
    assert row["result"]["summary"]["total_profit_loss"] == pytest.approx(result.summary["total_profit_loss"])


def test_run_record_sink_error(run_config, tmp_path):
    with RunRecordStore(str(tmp_path / "records.db")) as store:
        run_id = store.create_run("SPY")
        run_backtest(run_config, sink=RunRecordSink(store, run_id))
        row = store.get_run(run_id)

    assert row["status"] == "error"
    assert "SPY" in row["error"]


def test_cancel_request_stops_run(run_config, tmp_path):
    _prefill(run_config)
    with RunRecordStore(str(tmp_path / "records.db")) as store:
        run_id = store.create_run("SPY")
        store.request_cancel(run_id)
        result = run_backtest(run_config, sink=RunRecordSink(store, run_id))
        row = store.get_run(run_id)

    assert result.status == "error"
    assert result.error == "cancelled"
    assert result.trades == []
    assert row["status"] == "error"


def test_explicit_cancel_check(run_config):
    _prefill(run_config)
    result = run_backtest(run_config, should_cancel=lambda: True)
    assert result.error == "cancelled"


def test_artifacts_written(run_config, tmp_path):
    _prefill(run_config)
    data = run_config.model_dump()
    data["reporting"]["save_artifacts"] = True
    config = RunConfig(**data)

    result = run_backtest(config, run_id_mode="deterministic")

    assert result.ok
    run_dir = result.run_dir
    assert run_dir == tmp_path / "runs" / result.run_id
    for name in ("config_resolved.json", "manifest.json", "trades.csv", "daily_logs.csv", "price_history.csv", "metrics.json", "run.log"):
        assert (run_dir / name).exists(), name

    with open(run_dir / "manifest.json") as f:
        manifest = json.load(f)
    assert manifest["status"] == "completed"
    assert manifest["total_trades"] == len(result.trades)
    with open(run_dir / "metrics.json") as f:
        assert json.load(f)["details"]["total_trades"] == len(result.trades)


def test_error_manifest_written(run_config):
    data = run_config.model_dump()
    data["reporting"]["save_artifacts"] = True
    result = run_backtest(RunConfig(**data))

    with open(result.run_dir / "manifest.json") as f:
        manifest = json.load(f)
    assert manifest["status"] == "error"
    assert "SPY" in manifest["error"]


def test_failing_error_report_does_not_escape(run_config, tmp_path):
    with RunRecordStore(str(tmp_path / "records.db")) as store:
        sink = RunRecordSink(store, "run-that-was-never-created")
        result = run_backtest(run_config, sink=sink)

    assert result.status == "error"
    assert "run-that-was-never-created" in result.error
    assert result.trades == []
