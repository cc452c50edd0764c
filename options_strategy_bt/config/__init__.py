"""
Configuration system: schemas and loaders
"""

from .schemas import (
    LegConfig,
    EntryConditions,
    ExitConditions,
    BacktestConfig,
    DataConfig,
    EngineConfig,
    ReportingConfig,
    RunConfig,
)
from .loader import load_config, config_from_dict, apply_env_overrides, apply_cli_overrides

__all__ = [
    "LegConfig",
    "EntryConditions",
    "ExitConditions",
    "BacktestConfig",
    "DataConfig",
    "EngineConfig",
    "ReportingConfig",
    "RunConfig",
    "load_config",
    "config_from_dict",
    "apply_env_overrides",
    "apply_cli_overrides",
]
