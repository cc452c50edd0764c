"""
Backtest runner: orchestrates a single backtest execution.

This is the single entry point used by the CLI and by any service layer:
config -> bars (once) -> simulator day loop -> metrics -> result / artifacts / status sink.
"""

import logging
import os
import sys
import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import RunConfig
from ..data import AlpacaBarSource, HistoricalPriceProvider, SQLitePriceCache, TTLCache
from ..errors import NoPriceDataError
from .artifacts import RunArtifacts, generate_run_id
from .metrics import compute_details, compute_summary, pnl_history
from .progress import LoggingProgressSink, ProgressSink
from .simulator import TradeLifecycleSimulator

logger = logging.getLogger(__name__)


@dataclass
class BacktestRunResult:
    """Result of a backtest run; on error only status/error (and run id) are populated"""
    status: str
    error: Optional[str] = None
    run_id: Optional[str] = None
    run_dir: Optional[Path] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)
    trades: List[Dict[str, Any]] = field(default_factory=list)
    daily_logs: List[Dict[str, Any]] = field(default_factory=list)
    price_history: List[Dict[str, Any]] = field(default_factory=list)
    pnl_history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "completed"


def build_provider(config: RunConfig, today: Optional[date] = None) -> HistoricalPriceProvider:
    """Cache-backed provider from the data section (sqlite cache, optional Alpaca upstream)"""
    cache = SQLitePriceCache(config.data.cache_path)
    upstream = None
    if config.data.upstream == "alpaca":
        upstream = AlpacaBarSource.from_env(
            key_env=config.data.api_key_env,
            secret_env=config.data.api_secret_env,
            data_url=config.data.alpaca_data_url,
            feed=config.data.alpaca_feed,
            timeout=config.data.request_timeout,
        )
    memory_cache = None
    if config.data.memory_cache_size > 0:
        memory_cache = TTLCache(
            max_size=config.data.memory_cache_size,
            ttl_seconds=config.data.memory_cache_ttl_seconds,
        )
    return HistoricalPriceProvider(cache, upstream=upstream, memory_cache=memory_cache, today=today)


class _ProgressReporter:
    """
    Fans simulator progress out to the status sink plus a console indicator:
    a tqdm bar when stderr is a terminal, otherwise a log line at most every ~5s.
    """

    def __init__(self, sink: ProgressSink, total_days: int):
        self.sink = sink
        self.total_days = total_days
        self._t0 = time.time()
        self._last_log = self._t0
        self._last_pct = 0.0
        self.pbar = None
        if os.environ.get("OSBT_TQDM", "1") != "0" and sys.stderr.isatty():
            from tqdm.auto import tqdm

            self.pbar = tqdm(total=100, desc="Simulating", unit="%", dynamic_ncols=True)

    def __call__(self, percent: float) -> None:
        self.sink.report_progress(percent)
        if self.pbar is not None:
            self.pbar.update(percent - self._last_pct)
        else:
            now = time.time()
            if now - self._last_log >= 5.0:
                days_done = int(round(percent / 100.0 * self.total_days))
                elapsed = now - self._t0
                speed = days_done / elapsed if elapsed > 0 else 0.0
                logger.info(f"Progress: {percent:.1f}% ({days_done}/{self.total_days}) | speed={speed:.1f} days/s")
                self._last_log = now
        self._last_pct = percent

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None


def run_backtest(
    config: RunConfig,
    provider: Optional[HistoricalPriceProvider] = None,
    sink: Optional[ProgressSink] = None,
    run_id_mode: str = "timestamp",
    should_cancel: Optional[Callable[[], bool]] = None,
) -> BacktestRunResult:
    """
    Run a backtest with the given configuration.

    Any exception (including missing price data and cancellation) is caught here once: it is
    logged, reported to the sink, and returned as status="error" with no partial trade data.

    Args:
        config: RunConfig instance
        provider: Price provider (default: built from config.data)
        sink: Progress/status sink (default: logging sink)
        run_id_mode: "deterministic" or "timestamp" for run ID generation
        should_cancel: Cancellation check polled once per simulated day
            (default: the sink's should_cancel, if it has one)

    Returns:
        BacktestRunResult
    """
    sink = sink or LoggingProgressSink(label=config.backtest.symbol)
    if should_cancel is None:
        should_cancel = getattr(sink, "should_cancel", None)

    bt = config.backtest
    config_dict = config.model_dump(mode="json")
    run_id = generate_run_id(config_dict, mode=run_id_mode)

    artifacts = None
    if config.reporting.save_artifacts:
        artifacts = RunArtifacts(Path(config.reporting.run_dir_root), run_id, config_dict)

    owns_provider = provider is None
    reporter = None
    try:
        logger.info(f"Starting backtest {run_id}: {bt.symbol} {bt.start_date} to {bt.end_date}, {len(bt.legs)} legs")
        sink.report_started()
        if artifacts is not None:
            artifacts.write_config_resolved(format=config.reporting.config_format)

        if provider is None:
            provider = build_provider(config)

        bars = provider.get_bars(bt.symbol, bt.start_date, bt.end_date)
        if not bars:
            raise NoPriceDataError(bt.symbol, bt.start_date, bt.end_date)
        logger.info(f"Simulating {len(bars)} trading days")

        reporter = _ProgressReporter(sink, total_days=len(bars))
        simulator = TradeLifecycleSimulator(
            bt,
            engine=config.engine,
            progress_callback=reporter,
            should_cancel=should_cancel,
        )
        sim = simulator.run(bars)
        reporter.close()

        summary = compute_summary(
            sim.trades, sim.daily_logs, bt.capital_method, bt.manual_capital, sim.peak_committed_buying_power
        )
        details = compute_details(sim.trades)

        result = BacktestRunResult(
            status="completed",
            run_id=run_id,
            run_dir=artifacts.run_dir if artifacts is not None else None,
            summary=summary.to_dict(),
            details=details.to_dict(),
            trades=[t.to_dict() for t in sim.trades],
            daily_logs=[d.to_dict() for d in sim.daily_logs],
            price_history=[b.to_dict() for b in bars],
            pnl_history=pnl_history(sim.daily_logs),
        )

        if artifacts is not None:
            artifacts.write_trades(result.trades)
            artifacts.write_daily_logs(result.daily_logs)
            artifacts.write_price_history(result.price_history)
            artifacts.write_metrics({"summary": result.summary, "details": result.details})
            artifacts.write_manifest({
                "status": result.status,
                "symbol": bt.symbol,
                "start": bt.start_date.isoformat(),
                "end": bt.end_date.isoformat(),
                "trading_days": len(bars),
                "total_trades": len(result.trades),
            })

        sink.report_result(result)
        logger.info(
            f"Backtest complete. Run ID: {run_id} | trades={details.total_trades} "
            f"P/L={summary.total_profit_loss:.2f} maxDD={summary.max_drawdown_percent:.2f}%"
        )
        return result

    except Exception as e:
        message = str(e) or e.__class__.__name__
        logger.error(f"Backtest failed: {message}", exc_info=True)
        try:
            sink.report_error(message)
        except Exception:
            logger.exception("Progress sink could not record the failure")
        if artifacts is not None:
            artifacts.write_manifest({"status": "error", "error": message})
        return BacktestRunResult(
            status="error",
            error=message,
            run_id=run_id,
            run_dir=artifacts.run_dir if artifacts is not None else None,
        )
    finally:
        if reporter is not None:
            reporter.close()
        if owns_provider and provider is not None:
            provider.cache.close()
        if artifacts is not None:
            artifacts.close()
