from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

from state.models import Strategy, TradingMode, new_id, trading_mode_from
from strategies.catalog import STRATEGY_TYPES, parse_parameters
from utils.errors import StrategyNotFound, ValidationError
from utils.logger import get_logger


logger = get_logger("strategies.book")

StrategiesListener = Callable[[list[Strategy]], None]

EDITABLE_FIELDS = {"name", "instrument_id", "type_id", "parameters", "active", "trading_mode", "persistent"}


class StrategyBook:
    """User-defined strategies, in creation order."""

    def __init__(self, strategies: Iterable[Strategy] = (), clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._strategies: list[Strategy] = list(strategies)
        self._clock = clock
        self._listeners: list[StrategiesListener] = []

    def add_listener(self, listener: StrategiesListener) -> None:
        self._listeners.append(listener)

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
        if not name:
            raise ValidationError("strategy name is required")
        if not instrument_id:
            raise ValidationError("strategy instrument_id is required")
        strategy = Strategy(
            strategy_id=new_id(),
            name=name,
            instrument_id=instrument_id,
            type_id=type_id,
            parameters=parse_parameters(type_id, parameters),
            active=active,
            trading_mode=trading_mode_from(trading_mode) if trading_mode else None,
            persistent=persistent,
            created_at=int(self._clock()),
        )
        with self._lock:
            self._strategies.append(strategy)
        logger.info("added strategy %s (%s) for %s", strategy.strategy_id, type_id, instrument_id)
        self._notify()
        return replace(strategy)

    def get(self, strategy_id: str) -> Strategy:
        with self._lock:
            return replace(self._strategies[self._index(strategy_id)])

    def toggle(self, strategy_id: str) -> Strategy:
        with self._lock:
            index = self._index(strategy_id)
            current = self._strategies[index]
            self._strategies[index] = replace(current, active=not current.active)
            updated = replace(self._strategies[index])
        self._notify()
        return updated

    def update(self, strategy_id: str, **changes: Any) -> Strategy:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"cannot update strategy fields: {', '.join(sorted(unknown))}")
        with self._lock:
            index = self._index(strategy_id)
            current = self._strategies[index]
            type_id = changes.get("type_id", current.type_id)
            if "parameters" in changes or type_id != current.type_id:
                raw = changes.get("parameters")
                if raw is not None and type(raw) in STRATEGY_TYPES.values():
                    if raw.type_id != type_id:
                        raise ValidationError(f"parameters of type {raw.type_id!r} do not fit strategy type {type_id!r}")
                    changes["parameters"] = raw
                else:
                    changes["parameters"] = parse_parameters(type_id, raw)
            if changes.get("trading_mode") is not None:
                changes["trading_mode"] = trading_mode_from(changes["trading_mode"])
            self._strategies[index] = replace(current, **changes)
            updated = replace(self._strategies[index])
        self._notify()
        return updated

    def remove(self, strategy_id: str) -> bool:
        with self._lock:
            kept = [s for s in self._strategies if s.strategy_id != strategy_id]
            removed = len(kept) != len(self._strategies)
            self._strategies = kept
        if removed:
            logger.info("removed strategy %s", strategy_id)
            self._notify()
        return removed

    def list(self) -> list[Strategy]:
        with self._lock:
            return [replace(s) for s in self._strategies]

    def active_for(self, mode: TradingMode | str) -> list[Strategy]:
        mode = trading_mode_from(mode)
        return [s for s in self.list() if s.active and s.runs_in(mode)]

    def persistent(self) -> list[Strategy]:
        return [s for s in self.list() if s.persistent]

    def _index(self, strategy_id: str) -> int:
        for index, strategy in enumerate(self._strategies):
            if strategy.strategy_id == strategy_id:
                return index
        raise StrategyNotFound(strategy_id)

    def _notify(self) -> None:
        snapshot = self.list()
        for listener in self._listeners:
            listener(snapshot)
