from __future__ import annotations

from dataclasses import dataclass

from utils.errors import PeriodNotFound


@dataclass(frozen=True)
class BacktestPeriod:
    period_id: str
    name: str
    days: int


BACKTEST_PERIODS: tuple[BacktestPeriod, ...] = (
    BacktestPeriod("7d", "7 Days", 7),
    BacktestPeriod("30d", "30 Days", 30),
    BacktestPeriod("90d", "90 Days", 90),
    BacktestPeriod("180d", "6 Months", 180),
    BacktestPeriod("365d", "1 Year", 365),
)

DEFAULT_PERIOD_ID = "30d"


def resolve_period(period_id: str, periods: tuple[BacktestPeriod, ...] = BACKTEST_PERIODS) -> BacktestPeriod:
    for period in periods:
        if period.period_id == period_id:
            return period
    raise PeriodNotFound(period_id)
