from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Callable, Iterator

from state.models import (
    DEFAULT_FUTURES_LEVERAGE,
    INITIAL_BALANCE,
    Account,
    Performance,
    TradingMode,
    initial_account,
    trading_mode_from,
)
from utils.logger import get_logger


logger = get_logger("ledger.store")

CommitListener = Callable[[Account], None]


class LedgerStore:
    """Owns the spot and future accounts.

    Every mutation runs inside ``transaction``: it works on a private copy of
    the account and swaps it in only when the block exits cleanly, all under
    one re-entrant lock. Readers take copies under the same lock, so a reader
    never sees half of a transition.
    """

    def __init__(
        self,
        initial_balance: float = INITIAL_BALANCE,
        default_leverage: int = DEFAULT_FUTURES_LEVERAGE,
        accounts: dict[TradingMode, Account] | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self.initial_balance = initial_balance
        self.default_leverage = default_leverage
        self._accounts: dict[TradingMode, Account] = {
            mode: self._fresh(mode) for mode in TradingMode
        }
        if accounts:
            self._accounts.update(accounts)
        self._listeners: list[CommitListener] = []

    def add_listener(self, listener: CommitListener) -> None:
        self._listeners.append(listener)

    def get_account(self, mode: TradingMode | str) -> Account:
        mode = trading_mode_from(mode)
        with self._lock:
            return copy.deepcopy(self._accounts[mode])

    @contextmanager
    def transaction(self, mode: TradingMode | str) -> Iterator[Account]:
        mode = trading_mode_from(mode)
        with self._lock:
            working = copy.deepcopy(self._accounts[mode])
            yield working
            self._accounts[mode] = working
            self._notify(working)

    def reset_account(self, mode: TradingMode | str) -> Account:
        mode = trading_mode_from(mode)
        with self.transaction(mode) as account:
            fresh = self._fresh(mode)
            account.balance = fresh.balance
            account.assets = fresh.assets
            account.open_positions = fresh.open_positions
            account.closed_trades = fresh.closed_trades
            account.performance = fresh.performance
            account.leverage = fresh.leverage
        logger.info("account reset", extra={"trading_mode": mode.value})
        return self.get_account(mode)

    def clear_history(self, mode: TradingMode | str) -> Account:
        mode = trading_mode_from(mode)
        with self.transaction(mode) as account:
            account.assets = {}
            account.closed_trades = []
            account.open_positions = []
            account.performance = Performance()
        logger.info("account history cleared", extra={"trading_mode": mode.value})
        return self.get_account(mode)

    def _fresh(self, mode: TradingMode) -> Account:
        return initial_account(mode, self.initial_balance, self.default_leverage)

    def _notify(self, account: Account) -> None:
        for listener in self._listeners:
            listener(copy.deepcopy(account))
