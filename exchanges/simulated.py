from __future__ import annotations

import random
import time
from typing import Callable

from data.price_source import PriceSource
from exchanges.base_exchange import SUPPORTED_EXCHANGES, ExchangeClient
from state.models import (
    EXCHANGE_STRATEGY_ID,
    ExchangeSnapshot,
    Position,
    PositionSide,
    TradingMode,
    new_id,
)
from utils.errors import AuthError, SyncError
from utils.logger import get_logger
from utils.time import SECONDS_PER_DAY


logger = get_logger("exchange.simulated")

# Balance range (low, width) per exchange.
BALANCE_RANGES: dict[str, tuple[float, float]] = {
    "mexc": (8000.0, 15000.0),
    "binance": (5000.0, 10000.0),
    "okx": (6000.0, 12000.0),
    "bybit": (4000.0, 8000.0),
}
DEFAULT_BALANCE_RANGE = (5000.0, 10000.0)


class SimulatedExchangeClient(ExchangeClient):
    """Stand-in exchange that answers with plausible random account data."""

    name = "simulated"

    def __init__(
        self,
        price_source: PriceSource,
        rng: random.Random | None = None,
        latency_seconds: float = 1.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.price_source = price_source
        self._rng = rng or random.Random()
        self.latency_seconds = latency_seconds
        self._clock = clock
        self.exchange: str | None = None
        self.api_key = ""

    def connect(self, exchange: str, api_key: str, api_secret: str) -> None:
        if not api_key or not api_secret:
            raise AuthError("No valid API credentials")
        if exchange not in SUPPORTED_EXCHANGES:
            raise AuthError(f"Unsupported exchange: {exchange}")
        self.exchange = exchange
        self.api_key = api_key
        logger.info("connected to simulated %s", exchange)

    def is_connected(self, exchange: str, api_key: str) -> bool:
        return self.exchange == exchange and self.api_key == api_key

    def fetch_snapshot(self, mode: TradingMode) -> ExchangeSnapshot:
        if self.exchange is None:
            raise SyncError("Exchange not connected")
        if self.latency_seconds > 0:
            time.sleep(self.latency_seconds)

        low, width = BALANCE_RANGES.get(self.exchange, DEFAULT_BALANCE_RANGE)
        balance = self._rng.random() * width + low
        instruments = self.price_source.instrument_ids()
        if not instruments:
            raise SyncError("No instruments available for exchange snapshot")

        now = self._clock()
        positions: list[Position] = []
        for _ in range(self._rng.randint(1, 5)):
            instrument_id = self._rng.choice(instruments)
            current = self.price_source.current_price(instrument_id)
            side = PositionSide.LONG if self._rng.random() > 0.5 else PositionSide.SHORT
            amount = self._rng.random() * 2 + 0.1
            entry = current * (0.9 + self._rng.random() * 0.2)
            if side is PositionSide.LONG:
                pnl = (current - entry) * amount
            else:
                pnl = (entry - current) * amount
            positions.append(
                Position(
                    position_id=new_id("exchange"),
                    strategy_id=EXCHANGE_STRATEGY_ID,
                    instrument_id=instrument_id,
                    side=side,
                    entry_price=entry,
                    amount=amount,
                    timestamp=int(now - self._rng.random() * SECONDS_PER_DAY * 7),
                    trading_mode=mode,
                    mark_price=current,
                    unrealized_pnl=pnl,
                    exchange_ref=new_id(self.exchange),
                )
            )
        return ExchangeSnapshot(
            exchange=self.exchange,
            balance=balance,
            open_positions=tuple(positions),
            synced_at=int(now),
        )
