from __future__ import annotations

import argparse
from pathlib import Path

from analytics.collector import equity_statistics, trade_statistics
from analytics.export import export_result
from app.bootstrap import Bootstrap
from config.loader import load_config
from console.dashboard import Dashboard
from console.menu import ConsoleMenu
from state.models import BacktestSettings
from utils.errors import EngineError
from utils.logger import configure_logging
from utils.time import ts_to_iso


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Paper trading ledger")
    parser.add_argument(
        "--config",
        default="config/config.ini",
        help="Path to config.ini",
    )
    parser.add_argument(
        "--mode",
        choices=["spot", "future"],
        help="Override trading mode from config",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed the random generators",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Mark the ledger to market with a live dashboard")
    run.add_argument("--interactive", action="store_true", help="Interactive console menu")
    run.add_argument("--headless", action="store_true", help="Run without the dashboard")
    run.add_argument("--duration", type=float, help="Stop after this many seconds (headless only)")

    backtest = commands.add_parser("backtest", help="Run a synthetic backtest for one strategy")
    backtest.add_argument("strategy_id")
    backtest.add_argument("--period", help="Backtest period id, e.g. 30d")
    backtest.add_argument("--no-fees", action="store_true", help="Ignore trading fees")
    backtest.add_argument("--export", type=Path, help="Write the trades to a Parquet file in this directory")

    commands.add_parser("rank", help="Backtest active strategies and print the best one")
    commands.add_parser("reset", help="Reset the account of the trading mode")
    commands.add_parser("clear-history", help="Clear trades and positions, keep the balance")
    commands.add_parser("sync", help="Refresh the exchange overlay")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()
    config = load_config(config_path)

    if args.mode:
        config = config.with_trading_mode(args.mode)
    if args.seed is not None:
        config = config.with_seed(args.seed)
    if args.command == "run" and args.interactive:
        config = ConsoleMenu(config).run()

    configure_logging(config.logging, config.paths.logs_dir)

    app = Bootstrap(config).build()
    engine = app.engine

    if args.command == "run":
        view = None if args.headless else Dashboard().run
        app.run(duration_seconds=args.duration, view=view)
        return 0

    try:
        if args.command == "backtest":
            settings = BacktestSettings(
                strategy_id=args.strategy_id,
                period_id=args.period or config.backtest.default_period,
                initial_balance=config.backtest.initial_balance,
                include_fees=config.backtest.include_fees and not args.no_fees,
                fee_percentage=config.backtest.fee_percentage,
            )
            result = engine.run_backtest(settings)
            trades = trade_statistics(result.trades)
            observed = equity_statistics(result.equity)
            print(f"result {result.result_id} for {result.strategy_id}")
            print(f"  window         {ts_to_iso(result.start_ts)} .. {ts_to_iso(result.end_ts)}")
            print(f"  final balance  {result.final_balance:,.2f} ({result.performance.total_return:+.2f}%)")
            print(f"  win rate       {result.performance.win_rate:.2f}%")
            print(f"  profit factor  {result.performance.profit_factor:.2f}")
            print(f"  max drawdown   {result.performance.max_drawdown:.2f}%")
            print(f"  trades         {trades.total_trades} ({trades.buys} buy / {trades.sells} sell)")
            print(f"  equity walk    {observed.observed_return:+.2f}%")
            if args.export:
                print(f"  exported       {export_result(result, args.export)}")
        elif args.command == "rank":
            best = engine.find_best_strategy()
            print(best or "no active strategy could be ranked")
        elif args.command == "reset":
            account = engine.reset_account()
            print(f"{account.trading_mode.value} account reset to {account.balance:,.2f}")
        elif args.command == "clear-history":
            account = engine.clear_history()
            print(f"{account.trading_mode.value} history cleared, balance {account.balance:,.2f}")
        elif args.command == "sync":
            ok = engine.sync_exchange_data()
            settings = engine.exchange.settings
            if not ok:
                print(f"sync failed: {settings.connection_error}")
                return 1
            snapshot = engine.exchange.snapshot
            print(f"{snapshot.exchange}: balance {snapshot.balance:,.2f}, {len(snapshot.open_positions)} position(s)")
    except EngineError as exc:
        print(f"error: {exc}")
        return 1
    finally:
        engine.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
