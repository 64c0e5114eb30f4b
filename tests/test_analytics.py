import random
from pathlib import Path

import pytest

from analytics.collector import equity_statistics, results_frame, trade_statistics, trades_frame
from analytics.export import export_result, read_export
from backtest.results import BacktestResultStore
from backtest.simulator import BacktestSimulator
from data.price_source import StaticPriceSource
from state.models import BacktestSettings, Trade, TradeSide, TradingMode
from strategies.book import StrategyBook


def _trade(side: TradeSide, price: float, amount: float, pnl: float | None = None) -> Trade:
    return Trade(
        trade_id=f"t-{side.value}-{price}",
        strategy_id="s",
        instrument_id="bitcoin",
        side=side,
        price=price,
        amount=amount,
        timestamp=1_700_000_000,
        trading_mode=TradingMode.SPOT,
        pnl=pnl,
    )


def test_trade_statistics() -> None:
    trades = [
        _trade(TradeSide.BUY, 100.0, 1.0),
        _trade(TradeSide.SELL, 110.0, 1.0, pnl=10.0),
        _trade(TradeSide.BUY, 100.0, 2.0),
        _trade(TradeSide.SELL, 95.0, 2.0, pnl=-10.0),
        _trade(TradeSide.SELL, 120.0, 1.0, pnl=20.0),
    ]
    stats = trade_statistics(trades)
    assert stats.total_trades == 5
    assert stats.buys == 2
    assert stats.sells == 3
    assert stats.realized_pnl == pytest.approx(20.0)
    assert stats.win_rate == pytest.approx(200 / 3)
    assert stats.traded_notional == pytest.approx(100 + 110 + 200 + 190 + 120)


def test_trade_statistics_empty() -> None:
    stats = trade_statistics([])
    assert stats.total_trades == 0
    assert stats.win_rate == 0.0
    assert trades_frame([]).empty


def test_equity_statistics() -> None:
    stats = equity_statistics([100.0, 120.0, 90.0, 110.0])
    assert stats.points == 4
    assert stats.final_equity == 110.0
    assert stats.observed_return == pytest.approx(10.0)
    assert stats.observed_max_drawdown == pytest.approx(-25.0)


def test_equity_statistics_flat_and_empty() -> None:
    assert equity_statistics([100.0]).observed_max_drawdown == 0.0
    assert equity_statistics([]).points == 0


def _result():
    book = StrategyBook()
    results = BacktestResultStore()
    simulator = BacktestSimulator(book.get, StaticPriceSource({"bitcoin": 100.0}), results, rng=random.Random(9))
    strategy = book.add_strategy("Trend", "bitcoin", "trend_following")
    return simulator.run_backtest(BacktestSettings(strategy.strategy_id, "30d"))


def test_results_frame() -> None:
    result = _result()
    frame = results_frame([result])
    assert list(frame["result_id"]) == [result.result_id]
    assert frame.loc[0, "total_return"] == result.performance.total_return
    assert frame.loc[0, "trades"] == len(result.trades)


def test_export_result_to_parquet(tmp_path: Path) -> None:
    result = _result()
    path = export_result(result, tmp_path / "exports")

    frame = read_export(path)
    assert len(frame) == len(result.trades)
    assert list(frame["equity"]) == pytest.approx(list(result.equity[1:]))
    assert set(frame["result_id"]) == {result.result_id}
