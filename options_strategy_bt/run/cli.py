"""
Command line entrypoint: osbt --config <file> [overrides] [--dry-run].
"""

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from ..config import load_config, apply_env_overrides, apply_cli_overrides, RunConfig
from .artifacts import generate_run_id
from .progress import LoggingProgressSink, RunRecordSink, RunRecordStore
from .runner import run_backtest, BacktestRunResult

logger = logging.getLogger(__name__)

RULE_WIDTH = 70

# shortcut flag -> dotted config key
SHORTCUT_KEYS = {
    "symbol": "backtest.symbol",
    "start": "backtest.start_date",
    "end": "backtest.end_date",
}

EPILOG = """
Examples:
  osbt --config configs/short_put_spy.yaml
  osbt --config configs/short_put_spy.yaml --symbol QQQ --start 2024-01-02 --end 2024-06-28
  osbt --config configs/put_vertical_weekly.yaml --set backtest.exit_conditions.take_profit_percent=50
  osbt --config configs/short_put_spy.yaml --dry-run --run-id-mode deterministic
"""


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _print_block(title: str, sections: Sequence[Sequence[Tuple[str, str]]]):
    print("\n" + "=" * RULE_WIDTH)
    print(title)
    print("=" * RULE_WIDTH)
    for i, rows in enumerate(sections):
        if i:
            print("-" * RULE_WIDTH)
        for label, value in rows:
            print(f"{label}: {value}" if label else value)
    print("=" * RULE_WIDTH + "\n")


def print_summary(result: BacktestRunResult):
    s, d = result.summary, result.details
    header = [("Run ID", result.run_id)]
    if result.run_dir is not None:
        header.append(("Run Directory", str(result.run_dir)))
    performance = [
        ("Total P/L", f"${s.get('total_profit_loss', 0.0):,.2f}"),
        ("Used Capital", f"${s.get('used_capital', 0.0):,.2f}"),
        ("Return on Capital", f"{s.get('return_on_capital', 0.0):.2f}%"),
        ("CAGR", f"{s.get('cagr', 0.0):.2f}%"),
        ("Max Drawdown", f"{s.get('max_drawdown_percent', 0.0):.2f}% ({s.get('max_drawdown_date') or 'n/a'})"),
        ("MAR Ratio", f"{s.get('mar_ratio', 0.0):.2f}"),
    ]
    trading = [
        ("Total Trades", str(d.get("total_trades", 0))),
        ("Profit Rate", f"{d.get('profit_rate', 0.0):.2f}%"),
        ("Avg Win", f"${d.get('avg_win_size', 0.0):,.2f} | Avg Loss: ${d.get('avg_loss_size', 0.0):,.2f}"),
        ("Avg Days in Trade", f"{d.get('avg_days_in_trade', 0.0):.1f}"),
        ("Total Fees", f"${d.get('total_fees', 0.0):,.2f}"),
    ]
    trading += [(f"  {reason}", str(count)) for reason, count in (d.get("close_reasons") or {}).items()]
    _print_block("BACKTEST SUMMARY", [header, performance, trading])


def resolve_config(
    config_path: str,
    symbol: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    sets: Optional[List[str]] = None,
    no_artifacts: bool = False,
) -> RunConfig:
    """
    File, then OSBT__ environment, then --set pairs, then the shortcut flags.
    Later layers win.
    """
    config = apply_env_overrides(load_config(config_path))

    shortcuts = {"symbol": symbol, "start": start, "end": end}
    overrides = list(sets or [])
    overrides += [f"{SHORTCUT_KEYS[flag]}={value}" for flag, value in shortcuts.items() if value]
    if no_artifacts:
        overrides.append("reporting.save_artifacts=false")
    return apply_cli_overrides(config, overrides)


def cmd_dry_run(config: RunConfig, run_id_mode: str) -> str:
    run_id = generate_run_id(config.model_dump(mode="json"), mode=run_id_mode)
    bt = config.backtest
    entry = bt.entry_conditions

    rows = [
        (f"Run ID (mode: {run_id_mode})", run_id),
        ("Symbol", bt.symbol),
        ("Date Range", f"{bt.start_date} to {bt.end_date}"),
    ]
    rows += [
        (f"Leg {n}", f"{leg.direction} {leg.quantity}x {leg.option_type} "
                     f"{leg.strike_selection_method}={leg.strike_value} dte={leg.dte}")
        for n, leg in enumerate(bt.legs, start=1)
    ]
    capital = bt.capital_method + (f" ${bt.manual_capital:,.2f}" if bt.manual_capital else "")
    rows += [
        ("Entry", f"{entry.frequency} (max active {entry.max_active_trades})"),
        ("Capital", capital),
        ("Price Cache", f"{config.data.cache_path} (upstream: {config.data.upstream})"),
    ]
    _print_block("DRY RUN - Configuration Resolved", [rows])
    return run_id


def cmd_run(config: RunConfig, run_id_mode: str) -> BacktestRunResult:
    """Execute the run; with reporting.run_record_db set, status goes to that store"""
    db_path = config.reporting.run_record_db
    if not db_path:
        sink = LoggingProgressSink(config.backtest.symbol)
        return run_backtest(config, sink=sink, run_id_mode=run_id_mode)

    with RunRecordStore(db_path) as store:
        record_id = store.create_run(symbol=config.backtest.symbol)
        logger.info(f"Run record {record_id} in {db_path}")
        return run_backtest(config, sink=RunRecordSink(store, record_id), run_id_mode=run_id_mode)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="osbt",
        description="Backtest a multi-leg options strategy over daily bars",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--config", required=True, help="YAML or JSON run config")

    overrides = parser.add_argument_group("overrides")
    overrides.add_argument("--symbol", help="Underlying symbol")
    overrides.add_argument("--start", help="First simulated date (YYYY-MM-DD)")
    overrides.add_argument("--end", help="Last simulated date (YYYY-MM-DD)")
    overrides.add_argument(
        "--set",
        action="append",
        dest="sets",
        metavar="KEY=VALUE",
        help="Dotted config override, repeatable, e.g. backtest.fee_per_contract=0.65",
    )

    parser.add_argument("--run-id-mode", choices=["deterministic", "timestamp"], default="timestamp")
    parser.add_argument("--dry-run", action="store_true", help="Print the resolved run and exit")
    parser.add_argument("--no-artifacts", action="store_true", help="Skip writing runs/<run_id>/")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = resolve_config(
            args.config,
            symbol=args.symbol,
            start=args.start,
            end=args.end,
            sets=args.sets,
            no_artifacts=args.no_artifacts,
        )
    except Exception as e:
        logger.exception("Could not resolve configuration")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.dry_run:
        cmd_dry_run(config, args.run_id_mode)
        return 0

    result = cmd_run(config, args.run_id_mode)
    if not result.ok:
        print(f"ERROR: {result.error}", file=sys.stderr)
        return 1
    print_summary(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
