"""
Example runner script demonstrating programmatic backtest execution.

This calls the same run_backtest() function used by the CLI, then replays the first trade's
legs through the valuation walk.
"""

import sys
from datetime import date
from pathlib import Path

from options_strategy_bt.config import load_config
from options_strategy_bt.data import PriceBar
from options_strategy_bt.run.runner import run_backtest
from options_strategy_bt.valuation import WalkLeg, walk_strategy_value


def walk_first_trade(result):
    """Reprice the first trade's legs along the run's price path"""
    if not result.trades:
        return None
    trade = result.trades[0]
    opened = date.fromisoformat(trade["opened_date"])
    expiration = date.fromisoformat(trade["expiration_date"])
    bars = [
        PriceBar(date=date.fromisoformat(b["date"]), open=b["open"], high=b["high"], low=b["low"], close=b["close"], volume=b["volume"])
        for b in result.price_history
        if opened <= date.fromisoformat(b["date"]) <= expiration
    ]
    legs = [
        WalkLeg(
            option_type=leg["option_type"],
            position="short" if leg["direction"] == "sell" else "long",
            strike=leg["resolved_strike"],
            quantity=leg["quantity"],
            premium=leg["entry_price"],
            expiration_days=leg["dte_at_entry"],
        )
        for leg in trade["legs"]
    ]
    volatility = result.daily_logs[0]["volatility"] if result.daily_logs else 0.30
    return walk_strategy_value(legs, bars, trade["underlying_price_at_open"], volatility, opened, expiration)


def main():
    config_path = Path(__file__).parent.parent / "configs" / "short_put_spy.yaml"

    if not config_path.exists():
        print(f"ERROR: Config file not found: {config_path}")
        return 1

    config = load_config(str(config_path))

    # Optionally override programmatically
    # config.backtest.fee_per_contract = 0.0
    # config.reporting.save_artifacts = False

    print(f"Running backtest with config: {config_path}")
    result = run_backtest(config, run_id_mode="timestamp")
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1

    summary, details = result.summary, result.details
    print("\n" + "=" * 70)
    print("BACKTEST COMPLETE")
    print("=" * 70)
    print(f"Run ID: {result.run_id}")
    print(f"Run Directory: {result.run_dir}")
    print("-" * 70)
    print(f"Total P/L: ${summary.get('total_profit_loss', 0.0):,.2f}")
    print(f"CAGR: {summary.get('cagr', 0.0):.2f}%")
    print(f"Max Drawdown: {summary.get('max_drawdown_percent', 0.0):.2f}%")
    print(f"Total Trades: {details.get('total_trades', 0)}")
    print(f"Profit Rate: {details.get('profit_rate', 0.0):.2f}%")
    print("=" * 70)

    walk = walk_first_trade(result)
    if walk is not None:
        print(f"\nFirst trade held to expiry: P/L ${walk.metrics.total_return:,.2f} "
              f"({walk.metrics.total_return_percent:.2f}% of max risk), "
              f"max drawdown ${walk.metrics.max_drawdown:,.2f}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
