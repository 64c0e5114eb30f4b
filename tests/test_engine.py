import random
from pathlib import Path

from app.engine import EngineState, TradingEngine
from app.ticker import MarkToMarketTicker
from backtest.results import BacktestResultStore
from backtest.simulator import BacktestSimulator
from data.price_source import SimulatedPriceSource, StaticPriceSource
from exchanges.simulated import SimulatedExchangeClient
from exchanges.sync import ExchangeSyncAdapter
from execution.position_engine import PositionLifecycleEngine
from state.ledger import LedgerStore
from state.models import BacktestSettings, Position, TradingMode
from state.repository import InMemoryStateRepository, StateRepository
from state.sqlite_repository import SqliteStateRepository
from strategies.book import StrategyBook
from strategies.ranker import StrategyRanker


def _stored_accounts(repository: StateRepository) -> dict:
    accounts = {}
    for mode in TradingMode:
        account = repository.load_account(mode)
        if account is not None:
            accounts[mode] = account
    return accounts


def _engine(
    prices: StaticPriceSource | None = None,
    repository: StateRepository | None = None,
    seed: int = 1,
) -> TradingEngine:
    rng = random.Random(seed)
    prices = prices or StaticPriceSource({"bitcoin": 100.0, "ethereum": 50.0})
    repository = repository or InMemoryStateRepository()
    state = EngineState(
        ledger=LedgerStore(accounts=_stored_accounts(repository)),
        strategies=StrategyBook(repository.load_strategies()),
        results=BacktestResultStore(repository.load_results()),
    )
    simulator = BacktestSimulator(state.strategies.get, prices, state.results, rng=rng)
    return TradingEngine(
        state=state,
        positions=PositionLifecycleEngine(state.ledger, rng=rng),
        simulator=simulator,
        ranker=StrategyRanker(state.strategies, simulator),
        exchange=ExchangeSyncAdapter(SimulatedExchangeClient(prices, rng=rng, latency_seconds=0)),
        price_source=prices,
        repository=repository,
    )


def test_engine_trade_cycle_uses_current_prices() -> None:
    prices = StaticPriceSource({"bitcoin": 100.0})
    engine = _engine(prices)
    engine.set_trading_mode("future")

    position = engine.execute_trade("bitcoin", "buy", 1.0)
    assert isinstance(position, Position)
    assert engine.get_account().balance == 9900.0

    prices.set_price("bitcoin", 110.0)
    engine.mark_to_market()
    assert engine.get_account().open_positions[0].unrealized_pnl == 100.0

    closing = engine.close_position(None, position.position_id)
    assert closing.price == 110.0
    assert engine.get_account().balance == 10000.0
    assert engine.get_account("spot").balance == 10000.0


def test_mutations_are_persisted() -> None:
    repository = InMemoryStateRepository()
    engine = _engine(repository=repository)
    engine.execute_trade("bitcoin", "buy", 2.0, mode="spot")
    strategy = engine.add_strategy("Trend", "bitcoin", "trend_following")
    engine.add_strategy("Scratch", "bitcoin", "rsi", persistent=False)
    engine.run_backtest(BacktestSettings(strategy.strategy_id, "30d"))

    restored = _engine(repository=repository)
    assert restored.get_account("spot").assets == {"bitcoin": 2.0}
    assert [s.name for s in restored.list_strategies()] == ["Trend"]
    assert len(restored.list_results()) == 1


def test_engine_survives_repository_failure(tmp_path: Path) -> None:
    repository = SqliteStateRepository(tmp_path / "ledger.db")
    engine = _engine(repository=repository)
    repository.close()

    engine.execute_trade("bitcoin", "buy", 1.0, mode="spot")
    assert engine.get_account("spot").balance == 9900.0


def test_new_strategy_defaults_to_active_mode() -> None:
    engine = _engine()
    engine.set_trading_mode(TradingMode.FUTURE)
    strategy = engine.add_strategy("Trend", "bitcoin", "trend_following")
    assert strategy.trading_mode is TradingMode.FUTURE
    assert engine.active_strategies() == [strategy]
    assert engine.active_strategies("spot") == []


def test_start_and_stop_trading() -> None:
    engine = _engine()
    assert engine.start_trading("spot") is None
    assert engine.state.is_trading is False

    first = engine.add_strategy("A", "bitcoin", "trend_following", trading_mode="spot")
    engine.add_strategy("B", "ethereum", "macd", trading_mode="spot")
    best = engine.start_trading("spot")
    assert best is not None
    assert engine.state.active_strategy_id == best
    assert engine.state.is_trading

    engine.stop_trading()
    assert engine.state.active_strategy_id is None
    assert engine.state.is_trading is False
    assert len(engine.list_results()) == 2
    assert engine.get_strategy(first.strategy_id).name == "A"


def test_removing_active_strategy_stops_trading() -> None:
    engine = _engine()
    strategy = engine.add_strategy("A", "bitcoin", "trend_following", trading_mode="spot")
    assert engine.start_trading("spot") == strategy.strategy_id
    assert engine.remove_strategy(strategy.strategy_id) is True
    assert engine.state.is_trading is False


def test_portfolio_summary_includes_exchange_overlay() -> None:
    engine = _engine()
    engine.execute_trade("bitcoin", "buy", 10.0, mode="spot")
    local = engine.portfolio_summary("spot")
    assert local.balance == 9000.0
    assert local.assets_value == 1000.0
    assert local.exchange_balance == 0.0
    assert local.total_value == 10000.0
    assert len(local.open_positions) == 1

    engine.update_exchange_settings(exchange="binance", api_key="k", api_secret="s")
    assert engine.needs_sync()
    assert engine.sync_exchange_data("spot") is True

    summary = engine.portfolio_summary("spot")
    snapshot = engine.exchange.snapshot
    assert summary.exchange_balance == snapshot.balance
    assert summary.total_value == summary.balance + summary.assets_value + snapshot.balance
    assert len(summary.open_positions) == 1 + len(snapshot.open_positions)
    assert len(engine.get_account("spot").open_positions) == 1

    engine.disconnect_exchange()
    assert engine.portfolio_summary("spot").exchange_balance == 0.0


def test_reset_and_clear_history() -> None:
    engine = _engine()
    engine.execute_trade("bitcoin", "buy", 1.0, mode="future")
    assert engine.clear_history("future").balance == 9900.0
    assert engine.reset_account("future").balance == 10000.0


def test_ticker_tick_moves_prices_and_marks() -> None:
    prices = SimulatedPriceSource({"bitcoin": 100.0}, rng=random.Random(3), max_drift=0.01)
    engine = _engine(prices)
    engine.execute_trade("bitcoin", "buy", 1.0, mode="future")

    ticker = MarkToMarketTicker(engine, interval_seconds=60)
    ticker.tick()

    position = engine.get_account("future").open_positions[0]
    assert position.mark_price == prices.current_price("bitcoin")
    assert position.mark_price != 100.0
    assert ticker.ticks == 1
