"""
Config loading: YAML/JSON files, OSBT__ environment overrides, and --set overrides.

A file may hold a full RunConfig (backtest/data/engine/reporting sections) or just the
backtest request as the strategy builder posts it, in which case defaults fill the rest.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, List, Mapping

import yaml

from .schemas import RunConfig

ENV_PREFIX = "OSBT__"
RUN_SECTIONS = ("backtest", "data", "engine", "reporting")


def config_from_dict(raw: Mapping[str, Any]) -> RunConfig:
    """Validate a RunConfig dict, wrapping a bare backtest request if needed"""
    raw = dict(raw or {})
    if raw and not any(section in raw for section in RUN_SECTIONS):
        raw = {"backtest": raw}
    return RunConfig(**raw)


def load_config(path: str) -> RunConfig:
    """
    Read and validate a .yaml/.yml/.json config.

    Raises:
        FileNotFoundError: path does not exist
        ValueError: unsupported suffix
        pydantic.ValidationError: content does not describe a valid run
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = config_path.suffix.lower()
    with open(config_path, "r", encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(f) or {}
        elif suffix == ".json":
            raw = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .json")

    return config_from_dict(raw)


def _parse_value(raw: str) -> Any:
    """JSON first (numbers, lists, quoted strings), then true/false/null, else the raw text"""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        pass
    lowered = raw.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    return raw


def _set_nested(target: Dict[str, Any], keys: List[str], value: Any) -> None:
    for key in keys[:-1]:
        if not isinstance(target.get(key), dict):
            target[key] = {}
        target = target[key]
    target[keys[-1]] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _with_overrides(cfg: RunConfig, overrides: Dict[str, Any]) -> RunConfig:
    if not overrides:
        return cfg
    return RunConfig(**_deep_merge(cfg.model_dump(), overrides))


def apply_env_overrides(cfg: RunConfig) -> RunConfig:
    """
    Overlay OSBT__<section>__<key>[__<key>...] environment variables.

    Keys are lower-cased, so OSBT__BACKTEST__FEE_PER_CONTRACT works as well as
    OSBT__backtest__fee_per_contract.
    """
    overrides: Dict[str, Any] = {}
    for name, value in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        keys = name[len(ENV_PREFIX):].lower().split("__")
        if len(keys) >= 2:
            _set_nested(overrides, keys, _parse_value(value))
    return _with_overrides(cfg, overrides)


def apply_cli_overrides(cfg: RunConfig, sets: List[str]) -> RunConfig:
    """
    Overlay --set overrides such as backtest.fee_per_contract=0.65 or
    backtest.exit_conditions.take_profit_percent=50.
    """
    overrides: Dict[str, Any] = {}
    for item in sets or []:
        if "=" not in item:
            raise ValueError(f"Invalid --set format: {item}. Expected 'key=value'")
        key, value = item.split("=", 1)
        keys = [k for k in key.strip().split(".") if k]
        if len(keys) < 2:
            raise ValueError(f"Invalid --set key: {key}. Expected 'section.key' or 'section.nested.key'")
        _set_nested(overrides, keys, _parse_value(value))
    return _with_overrides(cfg, overrides)
