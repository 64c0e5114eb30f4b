"""Synthetic backtests.

Results are generated from bounded random draws rather than replayed price
history. The headline metrics are drawn independently of the trade walk, so
``final_balance`` (from ``total_return``) and the last ``equity`` point are not
expected to agree.
"""
from __future__ import annotations

import random
import time
from typing import Callable

from backtest.periods import BACKTEST_PERIODS, BacktestPeriod, resolve_period
from backtest.results import BacktestResultStore
from data.price_source import PriceSource
from state.models import (
    BacktestPerformance,
    BacktestResult,
    BacktestSettings,
    Strategy,
    Trade,
    TradeSide,
    TradingMode,
    new_id,
    require_positive,
)
from utils.errors import ValidationError
from utils.logger import get_logger, log_extra
from utils.time import SECONDS_PER_DAY


logger = get_logger("backtest.simulator")

StrategyLookup = Callable[[str], Strategy]

TOTAL_RETURN_RANGE = (-10.0, 30.0)
WIN_RATE_RANGE = (30.0, 70.0)
PROFIT_FACTOR_RANGE = (0.8, 2.5)
MAX_DRAWDOWN_RANGE = (-20.0, -5.0)
TRADE_COUNT_RANGE = (5, 25)
PRICE_JITTER = 0.1
POSITION_FRACTION = 0.1
TRADE_PNL_RANGE = (-0.1, 0.1)


class BacktestSimulator:
    def __init__(
        self,
        strategy_lookup: StrategyLookup,
        price_source: PriceSource,
        results: BacktestResultStore,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        periods: tuple[BacktestPeriod, ...] = BACKTEST_PERIODS,
        latency_seconds: float = 0.0,
    ) -> None:
        self.strategy_lookup = strategy_lookup
        self.price_source = price_source
        self.results = results
        self._rng = rng or random.Random()
        self._clock = clock
        self.periods = periods
        self.latency_seconds = latency_seconds

    def run_backtest(self, settings: BacktestSettings) -> BacktestResult:
        strategy = self.strategy_lookup(settings.strategy_id)
        period = resolve_period(settings.period_id, self.periods)
        initial_balance = require_positive("initial_balance", settings.initial_balance)
        if settings.fee_percentage < 0 or settings.fee_percentage >= 100:
            raise ValidationError(f"fee_percentage must be within [0, 100), got {settings.fee_percentage!r}")
        current_price = self.price_source.current_price(strategy.instrument_id)
        mode = strategy.trading_mode or TradingMode.SPOT

        if self.latency_seconds > 0:
            time.sleep(self.latency_seconds)

        end_ts = int(self._clock())
        start_ts = end_ts - period.days * SECONDS_PER_DAY

        performance = BacktestPerformance(
            total_return=self._rng.uniform(*TOTAL_RETURN_RANGE),
            win_rate=self._rng.uniform(*WIN_RATE_RANGE),
            profit_factor=self._rng.uniform(*PROFIT_FACTOR_RANGE),
            max_drawdown=self._rng.uniform(*MAX_DRAWDOWN_RANGE),
        )

        trade_count = self._rng.randint(*TRADE_COUNT_RANGE)
        timestamps = sorted(int(self._rng.uniform(start_ts, end_ts)) for _ in range(trade_count))
        fee_rate = settings.fee_percentage / 100 if settings.include_fees else 0.0

        trades: list[Trade] = []
        balance = initial_balance
        equity = [balance]
        for index, timestamp in enumerate(timestamps):
            side = TradeSide.BUY if index % 2 == 0 else TradeSide.SELL
            price = current_price * self._rng.uniform(1 - PRICE_JITTER, 1 + PRICE_JITTER)
            amount = initial_balance * POSITION_FRACTION / price
            notional = price * amount
            pnl = None
            if side is TradeSide.SELL:
                pnl = notional * self._rng.uniform(*TRADE_PNL_RANGE)
                balance += pnl - notional * fee_rate
            trades.append(
                Trade(
                    trade_id=new_id("trade"),
                    strategy_id=strategy.strategy_id,
                    instrument_id=strategy.instrument_id,
                    side=side,
                    price=price,
                    amount=amount,
                    timestamp=timestamp,
                    trading_mode=mode,
                    pnl=pnl,
                )
            )
            equity.append(balance)

        result = BacktestResult(
            result_id=new_id("backtest"),
            strategy_id=strategy.strategy_id,
            start_ts=start_ts,
            end_ts=end_ts,
            initial_balance=initial_balance,
            final_balance=initial_balance * (1 + performance.total_return / 100),
            trades=tuple(trades),
            equity=tuple(equity),
            performance=performance,
            trading_mode=mode,
        )
        self.results.append(result)
        log_extra(
            logger,
            "backtest completed",
            trading_mode=mode.value,
            result_id=result.result_id,
            strategy_id=strategy.strategy_id,
            period=period.period_id,
            trades=len(trades),
            total_return=performance.total_return,
        )
        return result

    def get_result(self, result_id: str) -> BacktestResult:
        return self.results.get(result_id)

    def delete_result(self, result_id: str) -> None:
        self.results.delete(result_id)
