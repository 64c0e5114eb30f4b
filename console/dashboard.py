from __future__ import annotations

import time

from rich.console import Group
from rich.live import Live
from rich.table import Table

from app.engine import PortfolioSummary, TradingEngine
from data.price_source import PriceSource


def summary_table(summary: PortfolioSummary, active_strategy: str | None) -> Table:
    table = Table(title=f"Paper Ledger ({summary.trading_mode.value})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Strategy", active_strategy or "-")
    table.add_row("Balance", f"{summary.balance:,.2f}")
    table.add_row("Assets value", f"{summary.assets_value:,.2f}")
    table.add_row("Exchange balance", f"{summary.exchange_balance:,.2f}")
    table.add_row("Total value", f"{summary.total_value:,.2f}")
    table.add_row("Unrealized PnL", f"{summary.unrealized_pnl:,.2f}")
    table.add_row("Closed trades", str(summary.closed_trades))
    perf = summary.performance
    table.add_row(
        "Performance",
        f"d {perf.daily:+.2f}% / w {perf.weekly:+.2f}% / m {perf.monthly:+.2f}% / all {perf.all_time:+.2f}%",
    )
    return table


def positions_table(summary: PortfolioSummary) -> Table:
    table = Table(title="Open positions")
    for column in ("Instrument", "Side", "Amount", "Entry", "Mark", "PnL", "Source"):
        table.add_column(column)
    for position in summary.open_positions:
        table.add_row(
            position.instrument_id,
            position.side.value,
            f"{position.amount:.6f}",
            f"{position.entry_price:,.4f}",
            f"{position.mark_price:,.4f}",
            f"{position.unrealized_pnl:,.2f}",
            "exchange" if position.exchange_ref else "local",
        )
    return table


def price_change(prices: PriceSource, instrument_id: str) -> tuple[float, float] | None:
    try:
        history = prices.price_history(instrument_id)
    except LookupError:
        return None
    if not history or history[0] <= 0:
        return None
    last = history[-1]
    return last, (last / history[0] - 1) * 100


def prices_table(prices: PriceSource, instrument_ids: list[str]) -> Table:
    table = Table(title="Prices")
    for column in ("Instrument", "Last", "Change"):
        table.add_column(column)
    for instrument_id in instrument_ids:
        change = price_change(prices, instrument_id)
        if change is None:
            continue
        last, percent = change
        table.add_row(instrument_id, f"{last:,.4f}", f"{percent:+.2f}%")
    return table


class Dashboard:
    def __init__(self, refresh_seconds: float = 1.0) -> None:
        self.refresh_seconds = refresh_seconds

    def render(self, engine: TradingEngine) -> Group:
        summary = engine.portfolio_summary()
        held = sorted({position.instrument_id for position in summary.open_positions})
        return Group(
            summary_table(summary, engine.state.active_strategy_id),
            positions_table(summary),
            prices_table(engine.price_source, held),
        )

    def run(self, engine: TradingEngine) -> None:
        with Live(auto_refresh=False) as live:
            while True:
                live.update(self.render(engine), refresh=True)
                time.sleep(self.refresh_seconds)
