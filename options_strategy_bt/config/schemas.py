"""
Configuration schemas using Pydantic for validation and type safety.

Backtest-facing models accept both snake_case and the camelCase keys produced by the
strategy builder front-end (e.g. ``strikeSelectionMethod``).
"""

from datetime import date
from typing import Optional, Literal, List
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


Direction = Literal["buy", "sell"]
OptionType = Literal["call", "put"]
StrikeSelectionMethod = Literal["delta", "percentOTM", "priceOffset", "premium"]
EntryFrequency = Literal["daily", "specificDays", "exactDTE"]
CapitalMethod = Literal["auto", "manual"]

_WEEKDAY_NAMES = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thurs": 3,
    "friday": 4, "fri": 4,
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LegConfig(_CamelModel):
    """One leg of the strategy template (strike is resolved at entry time)"""
    direction: Direction = Field(description="buy (long) or sell (short)")
    option_type: OptionType = Field(description="call or put")
    quantity: int = Field(default=1, gt=0, description="Contracts per trade")
    strike_selection_method: StrikeSelectionMethod = Field(default="delta", description="How the strike is chosen at entry")
    strike_value: float = Field(default=30.0, description="Delta (0.30 or 30), percent OTM, dollar offset, or premium target")
    dte: int = Field(default=30, ge=0, description="Target days to expiration at entry")

    @field_validator("direction", "option_type", mode="before")
    @classmethod
    def lower_case(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class EntryConditions(_CamelModel):
    """When new trades may be opened"""
    frequency: EntryFrequency = Field(default="daily", description="daily, specificDays or exactDTE")
    max_active_trades: int = Field(default=1, ge=1, description="Cap on concurrently open trades")
    specific_weekdays: List[int] = Field(default_factory=list, description="Weekdays (Mon=0..Fri=4) for specificDays")

    @field_validator("specific_weekdays", mode="before")
    @classmethod
    def parse_weekdays(cls, v):
        """Accept weekday names ('Monday', 'fri') or integers"""
        if v is None:
            return []
        out = []
        for item in v:
            if isinstance(item, str):
                key = item.strip().lower()
                if key.isdigit():
                    out.append(int(key))
                    continue
                if key not in _WEEKDAY_NAMES:
                    raise ValueError(f"Invalid weekday: {item}. Expected Monday..Friday")
                out.append(_WEEKDAY_NAMES[key])
            else:
                out.append(int(item))
        for d in out:
            if d < 0 or d > 4:
                raise ValueError(f"Invalid weekday index: {d}. Expected 0 (Mon) .. 4 (Fri)")
        return sorted(set(out))


class ExitConditions(_CamelModel):
    """Optional exit thresholds; None disables a rule"""
    exit_at_dte: Optional[int] = Field(default=None, alias="exitAtDTE", ge=0, description="Close when remaining DTE <= value")
    exit_after_days: Optional[int] = Field(default=None, ge=1, description="Close after N trading days in trade")
    stop_loss_percent: Optional[float] = Field(default=None, gt=0, description="Loss as % of net premium")
    take_profit_percent: Optional[float] = Field(default=None, gt=0, description="Profit as % of net premium")


class BacktestConfig(_CamelModel):
    """Fully-populated backtest request"""
    symbol: str = Field(description="Underlying ticker")
    start_date: date = Field(description="First calendar date of the backtest (inclusive)")
    end_date: date = Field(description="Last calendar date of the backtest (inclusive)")
    legs: List[LegConfig] = Field(min_length=1, description="Strategy template legs")
    entry_conditions: EntryConditions = Field(default_factory=EntryConditions)
    exit_conditions: ExitConditions = Field(default_factory=ExitConditions)
    capital_method: CapitalMethod = Field(default="auto", description="auto = peak committed buying power")
    manual_capital: Optional[float] = Field(default=None, gt=0, description="Capital base when capital_method='manual'")
    fee_per_contract: float = Field(default=0.0, ge=0, description="Fee per contract per side")

    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            if not v:
                raise ValueError("symbol must not be empty")
        return v

    @model_validator(mode="after")
    def check_dates_and_capital(self):
        if self.end_date < self.start_date:
            raise ValueError(f"end_date {self.end_date} is before start_date {self.start_date}")
        if self.capital_method == "manual" and self.manual_capital is None:
            raise ValueError("manual_capital is required when capital_method='manual'")
        return self


class DataConfig(BaseModel):
    """Price data configuration: sqlite cache plus upstream source"""
    cache_path: str = Field(default="price_cache.db", description="SQLite file for the price-bar cache (':memory:' allowed)")
    upstream: Literal["alpaca", "none"] = Field(default="alpaca", description="Upstream source used to fill cache gaps")
    alpaca_data_url: str = Field(default="https://data.alpaca.markets/v2", description="Alpaca market data base URL")
    alpaca_feed: str = Field(default="iex", description="Alpaca data feed")
    api_key_env: str = Field(default="ALPACA_API_KEY", description="Env var holding the API key")
    api_secret_env: str = Field(default="ALPACA_API_SECRET", description="Env var holding the API secret")
    request_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    memory_cache_size: int = Field(default=32, ge=0, description="Max in-process bar lookups kept (0 disables)")
    memory_cache_ttl_seconds: float = Field(default=300.0, gt=0, description="TTL for in-process bar lookups")


class EngineConfig(BaseModel):
    """Simulation constants"""
    risk_free_rate: float = Field(default=0.05, description="Annual risk-free rate")
    volatility_lookback: int = Field(default=30, ge=2, description="Bars used for realized volatility")
    volatility_risk_premium: float = Field(default=1.15, gt=0, description="Realized -> implied multiplier")
    default_volatility: float = Field(default=0.30, gt=0, description="Volatility when history is too short")
    progress_every_days: int = Field(default=5, ge=1, description="Report progress every N simulated days")


class ReportingConfig(BaseModel):
    """Reporting configuration"""
    run_dir_root: str = Field(default="runs", description="Root directory for run outputs")
    save_artifacts: bool = Field(default=True, description="Write CSV/JSON artifacts for the run")
    config_format: Literal["json", "yaml"] = Field(default="json", description="Format of config_resolved")
    run_record_db: Optional[str] = Field(default=None, description="SQLite file for run status records")


class RunConfig(BaseModel):
    """Complete run configuration"""
    backtest: BacktestConfig
    data: DataConfig = Field(default_factory=DataConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
