from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

from backtest.periods import DEFAULT_PERIOD_ID
from state.models import INITIAL_BALANCE, BacktestResult, BacktestSettings, TradingMode, trading_mode_from
from strategies.book import StrategyBook
from utils.errors import NotFoundError
from utils.logger import get_logger, log_extra


logger = get_logger("strategies.ranker")


class Backtester(Protocol):
    def run_backtest(self, settings: BacktestSettings) -> BacktestResult:
        ...


@dataclass(frozen=True)
class RankingTicket:
    generation: int


class StrategyRanker:
    """Backtests every active strategy of a mode and keeps the best total return.

    A ranking runs under a ticket; ``cancel`` or a newer ``begin`` supersedes
    it, and a superseded ranking reports no winner. Without a ticket a ranking
    joins the current generation and supersedes nothing.
    """

    def __init__(
        self,
        book: StrategyBook,
        backtester: Backtester,
        period_id: str = DEFAULT_PERIOD_ID,
        initial_balance: float = INITIAL_BALANCE,
        include_fees: bool = True,
        fee_percentage: float = 0.1,
    ) -> None:
        self.book = book
        self.backtester = backtester
        self.period_id = period_id
        self.initial_balance = initial_balance
        self.include_fees = include_fees
        self.fee_percentage = fee_percentage
        self._lock = threading.Lock()
        self._generation = 0

    def begin(self) -> RankingTicket:
        with self._lock:
            self._generation += 1
            return RankingTicket(self._generation)

    def current(self) -> RankingTicket:
        with self._lock:
            return RankingTicket(self._generation)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1

    def is_current(self, ticket: RankingTicket) -> bool:
        with self._lock:
            return ticket.generation == self._generation

    def find_best_strategy(self, mode: TradingMode | str, ticket: RankingTicket | None = None) -> str | None:
        mode = trading_mode_from(mode)
        ticket = ticket or self.current()
        candidates = self.book.active_for(mode)
        if not candidates:
            logger.info("no active strategies to rank", extra={"trading_mode": mode.value})
            return None

        best_id: str | None = None
        best_return = 0.0
        for strategy in candidates:
            if not self.is_current(ticket):
                logger.info("ranking superseded", extra={"trading_mode": mode.value})
                return None
            settings = BacktestSettings(
                strategy_id=strategy.strategy_id,
                period_id=self.period_id,
                initial_balance=self.initial_balance,
                include_fees=self.include_fees,
                fee_percentage=self.fee_percentage,
            )
            try:
                result = self.backtester.run_backtest(settings)
            except NotFoundError as exc:
                logger.warning("skipping strategy %s: %s", strategy.strategy_id, exc)
                continue
            except Exception as exc:  # noqa: BLE001
                logger.warning("backtest failed for strategy %s: %s", strategy.strategy_id, exc, exc_info=True)
                continue
            total_return = result.performance.total_return
            if best_id is None or total_return > best_return:
                best_id = strategy.strategy_id
                best_return = total_return

        if not self.is_current(ticket):
            logger.info("ranking superseded", extra={"trading_mode": mode.value})
            return None
        log_extra(
            logger,
            "ranking finished",
            trading_mode=mode.value,
            candidates=len(candidates),
            best_strategy=best_id,
            best_return=best_return if best_id else None,
        )
        return best_id
