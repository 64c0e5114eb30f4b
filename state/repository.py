from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, TypeVar

from state.codec import (
    account_from_dict,
    account_to_dict,
    result_from_dict,
    result_to_dict,
    strategy_from_dict,
    strategy_to_dict,
)
from state.models import Account, BacktestResult, Strategy, TradingMode
from utils.logger import get_logger


logger = get_logger("state.repository")

T = TypeVar("T")

STRATEGIES_KEY = "strategies"
RESULTS_KEY = "backtest_results"


def account_key(mode: TradingMode) -> str:
    return f"account.{mode.value}"


class StateRepository:
    """Opaque key/value store holding one JSON record per key.

    Subclasses only implement ``read``/``write``/``close``; typed load/save
    helpers live here. Loading fails closed: a record that does not parse
    into the expected shape is reported and treated as absent.
    """

    def read(self, key: str) -> str | None:
        raise NotImplementedError

    def write(self, key: str, payload: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def save_account(self, account: Account) -> None:
        self.write(account_key(account.trading_mode), json.dumps(account_to_dict(account)))

    def load_account(self, mode: TradingMode) -> Account | None:
        account = self._load(account_key(mode), account_from_dict)
        if account is not None and account.trading_mode is not mode:
            logger.warning("account record %s holds mode %s, ignoring", account_key(mode), account.trading_mode.value)
            return None
        return account

    def save_strategies(self, strategies: Iterable[Strategy]) -> None:
        payload = [strategy_to_dict(s) for s in strategies if s.persistent]
        self.write(STRATEGIES_KEY, json.dumps(payload))

    def load_strategies(self) -> list[Strategy]:
        return self._load(STRATEGIES_KEY, lambda data: [strategy_from_dict(item) for item in data]) or []

    def save_results(self, results: Iterable[BacktestResult]) -> None:
        self.write(RESULTS_KEY, json.dumps([result_to_dict(r) for r in results]))

    def load_results(self) -> list[BacktestResult]:
        return self._load(RESULTS_KEY, lambda data: [result_from_dict(item) for item in data]) or []

    def _load(self, key: str, decode: Callable[[Any], T]) -> T | None:
        raw = self.read(key)
        if raw is None:
            return None
        try:
            return decode(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("discarding unreadable record %s: %s", key, exc)
            return None


@dataclass
class InMemoryStateRepository(StateRepository):
    records: dict[str, str] = field(default_factory=dict)

    def read(self, key: str) -> str | None:
        return self.records.get(key)

    def write(self, key: str, payload: str) -> None:
        self.records[key] = payload

    def close(self) -> None:
        return None
