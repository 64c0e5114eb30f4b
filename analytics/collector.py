from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

import pandas as pd

from state.codec import trade_to_dict
from state.models import BacktestResult, Trade


TRADE_COLUMNS = [
    "trade_id",
    "strategy_id",
    "instrument_id",
    "side",
    "price",
    "amount",
    "timestamp",
    "trading_mode",
    "leverage",
    "pnl",
]


@dataclass(frozen=True)
class TradeStatistics:
    total_trades: int
    buys: int
    sells: int
    realized_pnl: float
    win_rate: float
    traded_notional: float


@dataclass(frozen=True)
class EquityStatistics:
    points: int
    final_equity: float
    observed_return: float
    observed_max_drawdown: float


def trades_frame(trades: Iterable[Trade]) -> pd.DataFrame:
    rows = [trade_to_dict(trade) for trade in trades]
    frame = pd.DataFrame(rows, columns=TRADE_COLUMNS)
    if not frame.empty:
        frame["datetime"] = pd.to_datetime(frame["timestamp"], unit="s", utc=True)
        frame["notional"] = frame["price"] * frame["amount"]
    return frame


def trade_statistics(trades: Iterable[Trade]) -> TradeStatistics:
    frame = trades_frame(trades)
    if frame.empty:
        return TradeStatistics(0, 0, 0, 0.0, 0.0, 0.0)
    realized = frame["pnl"].dropna().astype(float)
    wins = int((realized > 0).sum())
    return TradeStatistics(
        total_trades=len(frame),
        buys=int((frame["side"] == "buy").sum()),
        sells=int((frame["side"] == "sell").sum()),
        realized_pnl=float(realized.sum()),
        win_rate=wins / len(realized) * 100 if len(realized) else 0.0,
        traded_notional=float(frame["notional"].sum()),
    )


def equity_statistics(equity: Sequence[float]) -> EquityStatistics:
    """Return and drawdown as actually traced by an equity curve, in percent."""
    series = pd.Series(list(equity), dtype="float64")
    if series.empty:
        return EquityStatistics(0, 0.0, 0.0, 0.0)
    first = float(series.iloc[0])
    last = float(series.iloc[-1])
    peaks = series.cummax()
    drawdowns = (series - peaks) / peaks.where(peaks != 0)
    deepest = drawdowns.min()
    if pd.isna(deepest):
        deepest = 0.0
    return EquityStatistics(
        points=len(series),
        final_equity=last,
        observed_return=(last - first) / first * 100 if first else 0.0,
        observed_max_drawdown=float(deepest) * 100,
    )


def results_frame(results: Iterable[BacktestResult]) -> pd.DataFrame:
    rows = []
    for result in results:
        observed = equity_statistics(result.equity)
        rows.append(
            {
                "result_id": result.result_id,
                "strategy_id": result.strategy_id,
                "trading_mode": result.trading_mode.value,
                "initial_balance": result.initial_balance,
                "final_balance": result.final_balance,
                "trades": len(result.trades),
                **asdict(result.performance),
                "observed_return": observed.observed_return,
            }
        )
    return pd.DataFrame(rows)
