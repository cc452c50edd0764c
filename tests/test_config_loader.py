"""
Tests for config loader with overrides.
"""

import json
import os
import tempfile
from datetime import date
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from options_strategy_bt.config import (
    BacktestConfig,
    RunConfig,
    apply_cli_overrides,
    apply_env_overrides,
    load_config,
)


CONFIG_DICT = {
    "backtest": {
        "symbol": "spy",
        "startDate": "2024-01-02",
        "endDate": "2024-06-28",
        "legs": [
            {"direction": "Sell", "optionType": "PUT", "strikeSelectionMethod": "delta", "strikeValue": 30, "dte": 45},
            {"direction": "buy", "optionType": "put", "strikeSelectionMethod": "priceOffset", "strikeValue": 10, "dte": 45},
        ],
        "entryConditions": {"frequency": "specificDays", "maxActiveTrades": 3, "specificWeekdays": ["Monday", "fri"]},
        "exitConditions": {"exitAtDTE": 21, "takeProfitPercent": 50},
        "capitalMethod": "auto",
        "feePerContract": 0.65,
    },
    "data": {"cache_path": "/tmp/osbt-test.db", "upstream": "none"},
}


@pytest.fixture
def temp_config_json():
    """Create a temporary JSON config file"""
    fd, path = tempfile.mkstemp(suffix=".json")
    with open(fd, "w") as f:
        json.dump(CONFIG_DICT, f)

    yield path

    Path(path).unlink()


def test_load_config_json(temp_config_json):
    """Test loading JSON config with camelCase keys"""
    config = load_config(temp_config_json)
    assert isinstance(config, RunConfig)
    bt = config.backtest
    assert bt.symbol == "SPY"
    assert bt.start_date == date(2024, 1, 2)
    assert bt.legs[0].direction == "sell"
    assert bt.legs[0].option_type == "put"
    assert bt.entry_conditions.specific_weekdays == [0, 4]
    assert bt.exit_conditions.exit_at_dte == 21
    assert bt.exit_conditions.stop_loss_percent is None
    assert config.data.upstream == "none"
    assert config.engine.risk_free_rate == 0.05


def test_load_config_yaml():
    """Test loading YAML config"""
    fd, path = tempfile.mkstemp(suffix=".yaml")
    with open(fd, "w") as f:
        yaml.safe_dump(CONFIG_DICT, f)

    try:
        config = load_config(path)
        assert isinstance(config, RunConfig)
        assert config.backtest.fee_per_contract == 0.65
    finally:
        Path(path).unlink()


def test_load_config_rejects_unknown_suffix(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("x = 1")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/config.yaml")


def test_apply_env_overrides(temp_config_json, monkeypatch):
    """Test environment variable overrides"""
    monkeypatch.setenv("OSBT__backtest__fee_per_contract", "1.25")
    monkeypatch.setenv("OSBT__BACKTEST__EXIT_CONDITIONS__STOP_LOSS_PERCENT", "200")

    config = load_config(temp_config_json)
    config = apply_env_overrides(config)

    assert config.backtest.fee_per_contract == 1.25
    assert config.backtest.exit_conditions.stop_loss_percent == 200
    # untouched siblings survive the merge
    assert config.backtest.exit_conditions.take_profit_percent == 50


def test_apply_cli_overrides(temp_config_json):
    """Test CLI --set overrides"""
    config = load_config(temp_config_json)

    config = apply_cli_overrides(config, ["backtest.entry_conditions.max_active_trades=5"])
    assert config.backtest.entry_conditions.max_active_trades == 5
    assert isinstance(config.backtest.entry_conditions.max_active_trades, int)

    config = apply_cli_overrides(config, ["backtest.start_date=2024-02-01", "backtest.symbol=qqq"])
    assert config.backtest.start_date == date(2024, 2, 1)
    assert config.backtest.symbol == "QQQ"


def test_apply_cli_overrides_typed(temp_config_json):
    """Test that CLI overrides parse types correctly"""
    config = load_config(temp_config_json)

    config = apply_cli_overrides(config, ["engine.volatility_risk_premium=1.3"])
    assert config.engine.volatility_risk_premium == 1.3

    config = apply_cli_overrides(config, ["reporting.save_artifacts=false"])
    assert config.reporting.save_artifacts is False

    config = apply_cli_overrides(config, ["backtest.exit_conditions.exit_at_dte=null"])
    assert config.backtest.exit_conditions.exit_at_dte is None

    config = apply_cli_overrides(config, ['backtest.entry_conditions.specific_weekdays=["tue", 3]'])
    assert config.backtest.entry_conditions.specific_weekdays == [1, 3]


def test_apply_cli_overrides_bad_format(temp_config_json):
    config = load_config(temp_config_json)
    with pytest.raises(ValueError):
        apply_cli_overrides(config, ["backtest.fee_per_contract"])
    with pytest.raises(ValueError):
        apply_cli_overrides(config, ["fee=1"])


def test_backtest_config_validation():
    base = dict(CONFIG_DICT["backtest"])

    with pytest.raises(ValidationError):
        BacktestConfig(**{**base, "endDate": "2023-12-31"})

    with pytest.raises(ValidationError):
        BacktestConfig(**{**base, "legs": []})

    with pytest.raises(ValidationError):
        BacktestConfig(**{**base, "capitalMethod": "manual"})

    with pytest.raises(ValidationError):
        BacktestConfig(**{**base, "entryConditions": {"frequency": "specificDays", "specificWeekdays": ["saturday"]}})

    cfg = BacktestConfig(**{**base, "capitalMethod": "manual", "manualCapital": 25000})
    assert cfg.manual_capital == 25000


def test_snake_case_keys_accepted():
    cfg = BacktestConfig(
        symbol="IWM",
        start_date=date(2024, 1, 2),
        end_date=date(2024, 1, 31),
        legs=[{"direction": "buy", "option_type": "call", "strike_selection_method": "percentOTM", "strike_value": 2}],
        exit_conditions={"exit_at_dte": 7},
    )
    assert cfg.legs[0].strike_selection_method == "percentOTM"
    assert cfg.exit_conditions.exit_at_dte == 7
    assert cfg.entry_conditions.max_active_trades == 1


def test_bare_backtest_request_gets_default_sections(tmp_path):
    path = tmp_path / "request.json"
    path.write_text(json.dumps(CONFIG_DICT["backtest"]))

    config = load_config(str(path))

    assert config.backtest.symbol == "SPY"
    assert config.data.upstream == RunConfig(backtest=config.backtest).data.upstream
    assert config.reporting.save_artifacts is True
