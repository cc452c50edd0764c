"""
Per-run output directory: resolved config, manifest, CSV tables, metrics, and run.log.

Layout of runs/<run_id>/:
    config_resolved.{json,yaml}  manifest.json  metrics.json
    trades.csv  daily_logs.csv  price_history.csv  run.log
"""

import json
import hashlib
import logging
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Literal, Dict, Any, List, Sequence

import pandas as pd
import yaml

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "options_strategy_bt"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

TRADE_COLUMNS = [
    "trade_number", "opened_date", "closed_date", "expiration_date", "days_in_trade",
    "net_premium", "buying_power", "fees", "profit_loss", "roi", "close_reason",
    "underlying_price_at_open", "underlying_price_at_close", "legs", "exit_prices",
]
# list-valued trade fields, serialized as JSON text inside the CSV
NESTED_TRADE_COLUMNS = ("legs", "exit_prices")

DAILY_LOG_COLUMNS = [
    "date", "underlying_price", "total_profit_loss", "realized_pl", "unrealized_pl",
    "net_liquidity", "drawdown_percent", "roi", "active_trade_count",
    "committed_buying_power", "volatility",
]

PRICE_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


def _to_plain(obj: Any) -> Any:
    """Round-trip through JSON so dates and enums become plain strings"""
    return json.loads(json.dumps(obj, default=str))


class RunArtifacts:
    """
    Output files of one backtest run.

    Creating the object creates runs/<run_id>/ and starts mirroring the package's
    log records into run.log until close() (or the end of a with-block).
    """

    def __init__(self, run_dir: Path, run_id: str, config: Dict[str, Any]):
        self.run_id = run_id
        self.config = config
        self.run_dir = Path(run_dir) / run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.run_dir / "run.log"
        self._file_handler = self._attach_log_handler()

    def _attach_log_handler(self) -> logging.Handler:
        handler = logging.FileHandler(self.log_file, encoding="utf-8")
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger(PACKAGE_LOGGER).addHandler(handler)
        return handler

    def close(self):
        handler = getattr(self, "_file_handler", None)
        if handler is None:
            return
        logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
        handler.close()
        self._file_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _write_json(self, name: str, payload: Any):
        with open(self.run_dir / name, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)

    def _write_table(self, name: str, rows: List[Dict[str, Any]], columns: Sequence[str]):
        # empty runs still get a header row so downstream readers see the schema
        frame = pd.DataFrame(rows) if rows else pd.DataFrame(columns=list(columns))
        frame.to_csv(self.run_dir / name, index=False)

    def write_config_resolved(self, format: Literal["yaml", "json"] = "json"):
        if format == "json":
            self._write_json("config_resolved.json", self.config)
            return
        with open(self.run_dir / "config_resolved.yaml", "w", encoding="utf-8") as f:
            yaml.safe_dump(_to_plain(self.config), f, default_flow_style=False, sort_keys=False)

    def write_manifest(self, metadata: Dict[str, Any]):
        """manifest.json: run id, creation time (UTC), the resolved config, plus caller metadata"""
        manifest: Dict[str, Any] = {
            "run_id": self.run_id,
            "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "config": self.config,
        }
        manifest.update(metadata)
        self._write_json("manifest.json", manifest)

    def write_trades(self, trades: List[Dict[str, Any]]):
        rows = []
        for trade in trades:
            row = dict(trade)
            for key in NESTED_TRADE_COLUMNS:
                if key in row:
                    row[key] = json.dumps(row[key], default=str)
            rows.append(row)
        self._write_table("trades.csv", rows, TRADE_COLUMNS)

    def write_daily_logs(self, daily_logs: List[Dict[str, Any]]):
        self._write_table("daily_logs.csv", daily_logs, DAILY_LOG_COLUMNS)

    def write_price_history(self, bars: List[Dict[str, Any]]):
        self._write_table("price_history.csv", bars, PRICE_COLUMNS)

    def write_metrics(self, metrics: Dict[str, Any]):
        self._write_json("metrics.json", metrics)


def _config_digest(config: Dict[str, Any]) -> str:
    canonical = json.dumps(config, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]


def generate_run_id(
    config: Dict[str, Any],
    mode: Literal["deterministic", "timestamp"] = "timestamp",
    now: Optional[datetime] = None,
) -> str:
    """
    Name a run directory.

    "deterministic" gives run-<12 hex of sha256(config)>, so re-running an identical
    config lands in the same directory. "timestamp" gives run-YYYYMMDD-HHMMSS-NNN with
    a random three-digit tail for runs started within the same second.
    """
    if mode == "deterministic":
        return f"run-{_config_digest(config)}"
    if mode == "timestamp":
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")
        return f"run-{stamp}-{random.randint(100, 999)}"
    raise ValueError(f"Invalid run_id_mode: {mode}")
