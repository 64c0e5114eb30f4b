from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from utils.errors import ValidationError

if TYPE_CHECKING:
    from strategies.catalog import StrategyParameters


INITIAL_BALANCE = 10000.0
DEFAULT_FUTURES_LEVERAGE = 10
MANUAL_STRATEGY_ID = "manual"
EXCHANGE_STRATEGY_ID = "exchange"


class TradingMode(str, Enum):
    SPOT = "spot"
    FUTURE = "future"


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"


def trading_mode_from(value: str | TradingMode) -> TradingMode:
    if isinstance(value, TradingMode):
        return value
    try:
        return TradingMode(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown trading mode: {value!r}") from None


def trade_side_from(value: str | TradeSide | PositionSide) -> TradeSide:
    if isinstance(value, TradeSide):
        return value
    if isinstance(value, PositionSide):
        return TradeSide.BUY if value is PositionSide.LONG else TradeSide.SELL
    mapping = {
        "buy": TradeSide.BUY,
        "long": TradeSide.BUY,
        "sell": TradeSide.SELL,
        "short": TradeSide.SELL,
    }
    side = mapping.get(str(value).strip().lower())
    if side is None:
        raise ValidationError(f"unknown trade side: {value!r}")
    return side


def new_id(prefix: str | None = None) -> str:
    value = uuid4().hex[:12]
    return f"{prefix}-{value}" if prefix else value


def require_positive(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"{name} must be a finite number > 0, got {value!r}")
    return number


@dataclass(frozen=True)
class Trade:
    trade_id: str
    strategy_id: str
    instrument_id: str
    side: TradeSide
    price: float
    amount: float
    timestamp: int
    trading_mode: TradingMode
    leverage: int | None = None
    pnl: float | None = None

    @property
    def notional(self) -> float:
        return self.price * self.amount


@dataclass
class Position:
    position_id: str
    strategy_id: str
    instrument_id: str
    side: PositionSide
    entry_price: float
    amount: float
    timestamp: int
    trading_mode: TradingMode
    leverage: int | None = None
    mark_price: float = 0.0
    unrealized_pnl: float = 0.0
    exchange_ref: str | None = None

    @property
    def notional(self) -> float:
        return self.entry_price * self.amount


@dataclass
class Performance:
    daily: float = 0.0
    weekly: float = 0.0
    monthly: float = 0.0
    all_time: float = 0.0


@dataclass
class Account:
    trading_mode: TradingMode
    balance: float
    assets: dict[str, float] = field(default_factory=dict)
    open_positions: list[Position] = field(default_factory=list)
    closed_trades: list[Trade] = field(default_factory=list)
    performance: Performance = field(default_factory=Performance)
    leverage: int | None = None

    def held(self, instrument_id: str) -> float:
        return self.assets.get(instrument_id, 0.0)

    def credit_asset(self, instrument_id: str, amount: float) -> None:
        self._set_asset(instrument_id, self.held(instrument_id) + amount)

    def debit_asset(self, instrument_id: str, amount: float) -> None:
        if instrument_id not in self.assets:
            return
        self._set_asset(instrument_id, self.assets[instrument_id] - amount)

    def _set_asset(self, instrument_id: str, amount: float) -> None:
        if amount <= 0:
            self.assets.pop(instrument_id, None)
        else:
            self.assets[instrument_id] = amount

    def position_index(self, position_id: str) -> int | None:
        for index, position in enumerate(self.open_positions):
            if position.position_id == position_id:
                return index
        return None


def initial_account(
    mode: TradingMode,
    initial_balance: float = INITIAL_BALANCE,
    default_leverage: int = DEFAULT_FUTURES_LEVERAGE,
) -> Account:
    return Account(
        trading_mode=mode,
        balance=initial_balance,
        leverage=default_leverage if mode is TradingMode.FUTURE else None,
    )


@dataclass
class Strategy:
    strategy_id: str
    name: str
    instrument_id: str
    type_id: str
    parameters: "StrategyParameters"
    active: bool = True
    trading_mode: TradingMode | None = None
    persistent: bool = True
    created_at: int = 0

    def runs_in(self, mode: TradingMode) -> bool:
        return self.trading_mode is None or self.trading_mode is mode


@dataclass(frozen=True)
class BacktestSettings:
    strategy_id: str
    period_id: str
    initial_balance: float = INITIAL_BALANCE
    include_fees: bool = True
    fee_percentage: float = 0.1


@dataclass(frozen=True)
class BacktestPerformance:
    total_return: float
    win_rate: float
    profit_factor: float
    max_drawdown: float


@dataclass(frozen=True)
class BacktestResult:
    result_id: str
    strategy_id: str
    start_ts: int
    end_ts: int
    initial_balance: float
    final_balance: float
    trades: tuple[Trade, ...]
    equity: tuple[float, ...]
    performance: BacktestPerformance
    trading_mode: TradingMode


@dataclass(frozen=True)
class ExchangeSnapshot:
    exchange: str
    balance: float
    open_positions: tuple[Position, ...]
    synced_at: int
