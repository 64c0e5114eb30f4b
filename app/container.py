from __future__ import annotations

import random
import sqlite3
from functools import cached_property

from app.engine import EngineState, TradingEngine
from backtest.results import BacktestResultStore
from backtest.simulator import BacktestSimulator
from config.config_schema import AppConfig
from config.secrets import mask_secret
from data.price_source import SimulatedPriceSource
from exchanges.base_exchange import ExchangeClient, RateLimiter
from exchanges.bybit.adapter import BybitExchangeClient
from exchanges.simulated import SimulatedExchangeClient
from exchanges.sync import ExchangeSyncAdapter
from execution.position_engine import PositionLifecycleEngine
from state.ledger import LedgerStore
from state.models import TradingMode, trading_mode_from
from state.repository import InMemoryStateRepository, StateRepository
from state.sqlite_repository import SqliteStateRepository
from strategies.book import StrategyBook
from strategies.ranker import StrategyRanker
from utils.logger import get_logger


class Container:
    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._logger = get_logger("app.container")

    @cached_property
    def rng(self) -> random.Random:
        return random.Random(self.config.runtime.seed)

    @cached_property
    def state_repository(self) -> StateRepository:
        try:
            return SqliteStateRepository(self.config.paths.state_db)
        except (sqlite3.Error, OSError) as exc:
            self._logger.warning("sqlite repository unavailable: %s", exc)
            return InMemoryStateRepository()

    @cached_property
    def price_source(self) -> SimulatedPriceSource:
        return SimulatedPriceSource.from_instruments(rng=self.rng)

    def exchange_client(self) -> ExchangeClient:
        if self.config.exchange.client == "bybit":
            return BybitExchangeClient(
                RateLimiter(120),
                base_url=self.config.exchange.rest_url,
                timeout=self.config.exchange.timeout_seconds,
                recv_window=self.config.exchange.recv_window,
            )
        if self.config.exchange.client == "simulated":
            return SimulatedExchangeClient(
                self.price_source,
                rng=self.rng,
                latency_seconds=self.config.exchange.sync_delay_seconds,
            )
        raise ValueError(f"Unsupported exchange client: {self.config.exchange.client}")

    def ledger(self) -> LedgerStore:
        repository = self.state_repository
        accounts = {}
        for mode in TradingMode:
            account = repository.load_account(mode)
            if account is not None:
                accounts[mode] = account
        self._logger.info("restored %d stored account(s)", len(accounts))
        return LedgerStore(
            initial_balance=self.config.ledger.initial_balance,
            default_leverage=self.config.ledger.default_leverage,
            accounts=accounts,
        )

    def engine(self) -> TradingEngine:
        repository = self.state_repository
        state = EngineState(
            ledger=self.ledger(),
            strategies=StrategyBook(repository.load_strategies()),
            results=BacktestResultStore(repository.load_results()),
            active_trading_mode=trading_mode_from(self.config.runtime.trading_mode),
        )
        simulator = BacktestSimulator(
            state.strategies.get,
            self.price_source,
            state.results,
            rng=self.rng,
        )
        ranker = StrategyRanker(
            state.strategies,
            simulator,
            period_id=self.config.backtest.ranking_period,
            initial_balance=self.config.backtest.initial_balance,
            include_fees=self.config.backtest.include_fees,
            fee_percentage=self.config.backtest.fee_percentage,
        )
        exchange = ExchangeSyncAdapter(
            self.exchange_client(),
            exchange=self.config.exchange.exchange,
            api_key=self.config.exchange.api_key,
            api_secret=self.config.exchange.api_secret,
            stale_after_seconds=self.config.exchange.stale_after_seconds,
        )
        self._logger.info(
            "exchange overlay %s via %s client (key %s)",
            self.config.exchange.exchange,
            self.config.exchange.client,
            mask_secret(self.config.exchange.api_key) or "unset",
        )
        return TradingEngine(
            state=state,
            positions=PositionLifecycleEngine(state.ledger, rng=self.rng),
            simulator=simulator,
            ranker=ranker,
            exchange=exchange,
            price_source=self.price_source,
            repository=repository,
        )
