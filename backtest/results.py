from __future__ import annotations

import threading
from typing import Callable, Iterable

from state.models import BacktestResult
from utils.errors import ResultNotFound
from utils.logger import get_logger


logger = get_logger("backtest.results")

ResultsListener = Callable[[list[BacktestResult]], None]


class BacktestResultStore:
    """Append-only collection of backtest results, kept apart from the ledger."""

    def __init__(self, results: Iterable[BacktestResult] = ()) -> None:
        self._lock = threading.Lock()
        self._results: list[BacktestResult] = list(results)
        self._listeners: list[ResultsListener] = []

    def add_listener(self, listener: ResultsListener) -> None:
        self._listeners.append(listener)

    def append(self, result: BacktestResult) -> None:
        with self._lock:
            self._results.append(result)
            snapshot = list(self._results)
        self._notify(snapshot)

    def get(self, result_id: str) -> BacktestResult:
        with self._lock:
            for result in self._results:
                if result.result_id == result_id:
                    return result
        raise ResultNotFound(result_id)

    def delete(self, result_id: str) -> bool:
        with self._lock:
            kept = [r for r in self._results if r.result_id != result_id]
            removed = len(kept) != len(self._results)
            self._results = kept
            snapshot = list(kept)
        if removed:
            logger.info("deleted backtest result %s", result_id)
            self._notify(snapshot)
        return removed

    def list(self, strategy_id: str | None = None) -> list[BacktestResult]:
        with self._lock:
            if strategy_id is None:
                return list(self._results)
            return [r for r in self._results if r.strategy_id == strategy_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def _notify(self, snapshot: list[BacktestResult]) -> None:
        for listener in self._listeners:
            listener(snapshot)
