from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from backtest.results import BacktestResultStore
from backtest.simulator import BacktestSimulator
from data.price_source import PriceSource
from exchanges.sync import ExchangeSettings, ExchangeSyncAdapter
from execution.intents import TradeIntent, build_intent
from execution.position_engine import PositionLifecycleEngine
from risk.metrics import compute_exposure
from state.ledger import LedgerStore
from state.models import (
    Account,
    BacktestResult,
    BacktestSettings,
    Performance,
    Position,
    Strategy,
    Trade,
    TradeSide,
    TradingMode,
    trading_mode_from,
)
from state.repository import StateRepository
from strategies.book import StrategyBook
from strategies.ranker import StrategyRanker
from utils.logger import get_logger


logger = get_logger("app.engine")


@dataclass
class EngineState:
    ledger: LedgerStore
    strategies: StrategyBook
    results: BacktestResultStore
    active_trading_mode: TradingMode = TradingMode.SPOT
    active_strategy_id: str | None = None
    is_trading: bool = False


@dataclass(frozen=True)
class PortfolioSummary:
    trading_mode: TradingMode
    balance: float
    assets_value: float
    exchange_balance: float
    total_value: float
    unrealized_pnl: float
    performance: Performance
    open_positions: tuple[Position, ...] = field(default_factory=tuple)
    closed_trades: int = 0


class TradingEngine:
    """In-process API used by the surrounding app.

    Holds the one ``EngineState`` of the process; ledger mutations are
    serialized by the ledger store, and every committed change is written to
    the repository when one is attached.
    """

    def __init__(
        self,
        state: EngineState,
        positions: PositionLifecycleEngine,
        simulator: BacktestSimulator,
        ranker: StrategyRanker,
        exchange: ExchangeSyncAdapter,
        price_source: PriceSource,
        repository: StateRepository | None = None,
    ) -> None:
        self.state = state
        self.positions = positions
        self.simulator = simulator
        self.ranker = ranker
        self.exchange = exchange
        self.price_source = price_source
        self.repository = repository
        if repository is not None:
            self._attach(repository)

    # trading mode and session

    @property
    def active_trading_mode(self) -> TradingMode:
        return self.state.active_trading_mode

    def set_trading_mode(self, mode: TradingMode | str) -> TradingMode:
        self.state.active_trading_mode = trading_mode_from(mode)
        return self.state.active_trading_mode

    def start_trading(self, mode: TradingMode | str | None = None) -> str | None:
        mode = self._mode(mode)
        ticket = self.ranker.begin()
        best = self.ranker.find_best_strategy(mode, ticket)
        if best is None or not self.ranker.is_current(ticket):
            return None
        self.state.active_strategy_id = best
        self.state.is_trading = True
        logger.info("trading started with strategy %s", best, extra={"trading_mode": mode.value})
        return best

    def stop_trading(self) -> None:
        self.ranker.cancel()
        self.state.is_trading = False
        self.state.active_strategy_id = None

    def cancel_ranking(self) -> None:
        self.ranker.cancel()

    # ledger

    def get_account(self, mode: TradingMode | str | None = None) -> Account:
        return self.state.ledger.get_account(self._mode(mode))

    def open_position(self, mode: TradingMode | str | None, intent: TradeIntent) -> Position | Trade:
        return self.positions.open_position(self._mode(mode), intent)

    def execute_trade(
        self,
        instrument_id: str,
        side: str | TradeSide,
        amount: float,
        price: float | None = None,
        leverage: int | None = None,
        strategy_id: str | None = None,
        mode: TradingMode | str | None = None,
    ) -> Position | Trade:
        if price is None:
            price = self.price_source.current_price(instrument_id)
        intent = build_intent(instrument_id, side, price, amount, leverage=leverage, strategy_id=strategy_id)
        return self.open_position(mode, intent)

    def close_position(self, mode: TradingMode | str | None, position_id: str) -> Trade:
        return self.positions.close_position(self._mode(mode), position_id, self.price_source.current_price)

    def mark_to_market(self, mode: TradingMode | str | None = None) -> None:
        if mode is None:
            self.positions.mark_all(self.price_source.current_price)
            return
        self.positions.mark_to_market(mode, self.price_source.current_price)

    def reset_account(self, mode: TradingMode | str | None = None) -> Account:
        return self.state.ledger.reset_account(self._mode(mode))

    def clear_history(self, mode: TradingMode | str | None = None) -> Account:
        return self.state.ledger.clear_history(self._mode(mode))

    # strategies

    def add_strategy(
        self,
        name: str,
        instrument_id: str,
        type_id: str,
        parameters: Mapping[str, Any] | None = None,
        active: bool = True,
        trading_mode: TradingMode | str | None = None,
        persistent: bool = True,
    ) -> Strategy:
        return self.state.strategies.add_strategy(
            name,
            instrument_id,
            type_id,
            parameters=parameters,
            active=active,
            trading_mode=trading_mode or self.state.active_trading_mode,
            persistent=persistent,
        )

    def toggle_strategy(self, strategy_id: str) -> Strategy:
        return self.state.strategies.toggle(strategy_id)

    def update_strategy(self, strategy_id: str, **changes: Any) -> Strategy:
        return self.state.strategies.update(strategy_id, **changes)

    def remove_strategy(self, strategy_id: str) -> bool:
        removed = self.state.strategies.remove(strategy_id)
        if removed and self.state.active_strategy_id == strategy_id:
            self.stop_trading()
        return removed

    def get_strategy(self, strategy_id: str) -> Strategy:
        return self.state.strategies.get(strategy_id)

    def list_strategies(self) -> list[Strategy]:
        return self.state.strategies.list()

    def active_strategies(self, mode: TradingMode | str | None = None) -> list[Strategy]:
        return self.state.strategies.active_for(self._mode(mode))

    def persistent_strategies(self) -> list[Strategy]:
        return self.state.strategies.persistent()

    # backtests

    def run_backtest(self, settings: BacktestSettings) -> BacktestResult:
        return self.simulator.run_backtest(settings)

    def get_result(self, result_id: str) -> BacktestResult:
        return self.simulator.get_result(result_id)

    def delete_result(self, result_id: str) -> None:
        self.simulator.delete_result(result_id)

    def list_results(self, strategy_id: str | None = None) -> list[BacktestResult]:
        return self.state.results.list(strategy_id)

    def find_best_strategy(self, mode: TradingMode | str | None = None) -> str | None:
        return self.ranker.find_best_strategy(self._mode(mode))

    # exchange overlay

    def update_exchange_settings(
        self,
        exchange: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
    ) -> ExchangeSettings:
        return self.exchange.update_settings(exchange=exchange, api_key=api_key, api_secret=api_secret)

    def connect_exchange(self, exchange: str, api_key: str, api_secret: str) -> ExchangeSettings:
        return self.exchange.connect(exchange, api_key, api_secret)

    def disconnect_exchange(self) -> ExchangeSettings:
        return self.exchange.disconnect()

    def needs_sync(self) -> bool:
        return self.exchange.needs_sync()

    def sync_exchange_data(self, mode: TradingMode | str | None = None) -> bool:
        return self.exchange.sync_exchange_data(self._mode(mode))

    def portfolio_summary(self, mode: TradingMode | str | None = None) -> PortfolioSummary:
        mode = self._mode(mode)
        account = self.get_account(mode)
        assets_value = 0.0
        for instrument_id, amount in account.assets.items():
            try:
                assets_value += self.price_source.current_price(instrument_id) * amount
            except LookupError:
                logger.debug("no price for held asset %s", instrument_id)
        snapshot = self.exchange.snapshot
        exchange_balance = snapshot.balance if snapshot is not None else 0.0
        positions = self.exchange.merge_positions(account.open_positions, mode)
        exposure = compute_exposure(positions)
        return PortfolioSummary(
            trading_mode=mode,
            balance=account.balance,
            assets_value=assets_value,
            exchange_balance=exchange_balance,
            total_value=account.balance + assets_value + exchange_balance,
            unrealized_pnl=exposure.unrealized_pnl,
            performance=account.performance,
            open_positions=tuple(positions),
            closed_trades=len(account.closed_trades),
        )

    def close(self) -> None:
        self.ranker.cancel()
        if self.repository is not None:
            self.repository.close()

    def _mode(self, mode: TradingMode | str | None) -> TradingMode:
        if mode is None:
            return self.state.active_trading_mode
        return trading_mode_from(mode)

    def _attach(self, repository: StateRepository) -> None:
        def save_account(account: Account) -> None:
            self._persist("account", repository.save_account, account)

        def save_strategies(strategies: list[Strategy]) -> None:
            self._persist("strategies", repository.save_strategies, strategies)

        def save_results(results: list[BacktestResult]) -> None:
            self._persist("backtest results", repository.save_results, results)

        self.state.ledger.add_listener(save_account)
        self.state.strategies.add_listener(save_strategies)
        self.state.results.add_listener(save_results)

    def _persist(self, what: str, save: Any, payload: Any) -> None:
        try:
            save(payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s not persisted: %s", what, exc)
