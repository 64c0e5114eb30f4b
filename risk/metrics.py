from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Iterable

from state.models import Performance, Position, PositionSide, TradingMode


# Per-tick bounds of the display-only performance walk, by account.
PERFORMANCE_STEPS: dict[TradingMode, dict[str, tuple[float, float]]] = {
    TradingMode.SPOT: {
        "daily": (-0.5, 0.7),
        "weekly": (-0.3, 0.5),
        "monthly": (-0.2, 0.4),
        "all_time": (-0.1, 0.3),
    },
    TradingMode.FUTURE: {
        "daily": (-0.8, 1.2),
        "weekly": (-0.5, 0.8),
        "monthly": (-0.3, 0.6),
        "all_time": (-0.2, 0.4),
    },
}


@dataclass(frozen=True)
class ExposureSnapshot:
    gross_notional: float
    net_notional: float
    unrealized_pnl: float


def step_performance(performance: Performance, mode: TradingMode, rng: random.Random) -> Performance:
    bounds = PERFORMANCE_STEPS[mode]
    return Performance(
        daily=performance.daily + rng.uniform(*bounds["daily"]),
        weekly=performance.weekly + rng.uniform(*bounds["weekly"]),
        monthly=performance.monthly + rng.uniform(*bounds["monthly"]),
        all_time=performance.all_time + rng.uniform(*bounds["all_time"]),
    )


def leverage_factor(position: Position, account_leverage: int | None) -> int:
    if position.leverage is not None:
        return position.leverage
    if account_leverage is not None:
        return account_leverage
    return 1


def unrealized_pnl(position: Position, mark_price: float, leverage: int) -> float:
    if position.side is PositionSide.LONG:
        return (mark_price - position.entry_price) * position.amount * leverage
    return (position.entry_price - mark_price) * position.amount * leverage


def compute_exposure(
    positions: Iterable[Position],
    price_lookup: Callable[[str], float] | None = None,
) -> ExposureSnapshot:
    gross_notional = 0.0
    net_notional = 0.0
    pnl = 0.0
    for position in positions:
        price = position.mark_price or position.entry_price
        if price_lookup is not None:
            try:
                price = price_lookup(position.instrument_id)
            except LookupError:
                pass
        notional = float(price) * float(position.amount)
        gross_notional += abs(notional)
        if position.side is PositionSide.LONG:
            net_notional += notional
        else:
            net_notional -= notional
        pnl += position.unrealized_pnl
    return ExposureSnapshot(
        gross_notional=gross_notional,
        net_notional=net_notional,
        unrealized_pnl=pnl,
    )
