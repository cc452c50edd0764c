"""
Shared fixtures: synthetic daily bars and backtest configs.
"""

from datetime import date
from typing import Callable, List, Optional, Sequence

import pytest

from options_strategy_bt.config import BacktestConfig, RunConfig
from options_strategy_bt.data import PriceBar, trading_days


def make_bars(start: date, end: date, closes: Optional[Sequence[float]] = None, flat: float = 100.0) -> List[PriceBar]:
    """One bar per trading day; closes cycle through the given sequence (default: flat)"""
    days = trading_days(start, end)
    bars = []
    for i, d in enumerate(days):
        c = float(closes[i % len(closes)]) if closes else float(flat)
        bars.append(PriceBar(date=d, open=c, high=c, low=c, close=c, volume=1000.0))
    return bars


@pytest.fixture
def bars_factory() -> Callable[..., List[PriceBar]]:
    return make_bars


@pytest.fixture
def short_put_config() -> BacktestConfig:
    """Single short 30-DTE put, 5% OTM, one trade at a time, no fees"""
    return BacktestConfig(
        symbol="SPY",
        start_date=date(2024, 1, 2),
        end_date=date(2024, 3, 28),
        legs=[
            {
                "direction": "sell",
                "optionType": "put",
                "quantity": 1,
                "strikeSelectionMethod": "percentOTM",
                "strikeValue": 5,
                "dte": 30,
            }
        ],
        entryConditions={"frequency": "daily", "maxActiveTrades": 1},
    )


@pytest.fixture
def run_config(short_put_config, tmp_path) -> RunConfig:
    return RunConfig(
        backtest=short_put_config,
        data={"cache_path": str(tmp_path / "cache.db"), "upstream": "none", "memory_cache_size": 0},
        reporting={"run_dir_root": str(tmp_path / "runs"), "save_artifacts": False},
    )
