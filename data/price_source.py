from __future__ import annotations

import random
import threading
from collections import deque
from dataclasses import dataclass
from typing import Mapping

from utils.errors import InstrumentNotFound


@dataclass(frozen=True)
class Instrument:
    instrument_id: str
    symbol: str
    name: str
    reference_price: float


DEFAULT_INSTRUMENTS: tuple[Instrument, ...] = (
    Instrument("bitcoin", "BTC", "Bitcoin", 65000.0),
    Instrument("ethereum", "ETH", "Ethereum", 3500.0),
    Instrument("binancecoin", "BNB", "BNB", 580.0),
    Instrument("solana", "SOL", "Solana", 150.0),
    Instrument("ripple", "XRP", "XRP", 0.52),
    Instrument("cardano", "ADA", "Cardano", 0.45),
    Instrument("dogecoin", "DOGE", "Dogecoin", 0.15),
    Instrument("polkadot", "DOT", "Polkadot", 7.2),
)


class PriceSource:
    """Lookup table of current prices keyed by instrument id."""

    def current_price(self, instrument_id: str) -> float:
        raise NotImplementedError

    def price_history(self, instrument_id: str) -> list[float]:
        raise NotImplementedError

    def instrument_ids(self) -> list[str]:
        raise NotImplementedError

    def __call__(self, instrument_id: str) -> float:
        return self.current_price(instrument_id)


class StaticPriceSource(PriceSource):
    def __init__(self, prices: Mapping[str, float], history_size: int = 168) -> None:
        self._lock = threading.Lock()
        self._prices = {key: float(value) for key, value in prices.items()}
        self._history: dict[str, deque[float]] = {
            key: deque([value], maxlen=history_size) for key, value in self._prices.items()
        }

    @classmethod
    def from_instruments(cls, instruments: tuple[Instrument, ...] = DEFAULT_INSTRUMENTS) -> "StaticPriceSource":
        return cls({item.instrument_id: item.reference_price for item in instruments})

    def current_price(self, instrument_id: str) -> float:
        with self._lock:
            if instrument_id not in self._prices:
                raise InstrumentNotFound(instrument_id)
            return self._prices[instrument_id]

    def price_history(self, instrument_id: str) -> list[float]:
        with self._lock:
            if instrument_id not in self._history:
                raise InstrumentNotFound(instrument_id)
            return list(self._history[instrument_id])

    def instrument_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._prices)

    def set_price(self, instrument_id: str, price: float) -> None:
        with self._lock:
            self._prices[instrument_id] = float(price)
            history = self._history.setdefault(instrument_id, deque(maxlen=168))
            history.append(float(price))


class SimulatedPriceSource(StaticPriceSource):
    """Drifts every price by a small bounded random step on each ``tick``."""

    def __init__(
        self,
        prices: Mapping[str, float],
        rng: random.Random | None = None,
        max_drift: float = 0.001,
        history_size: int = 168,
    ) -> None:
        super().__init__(prices, history_size=history_size)
        self._rng = rng or random.Random()
        self.max_drift = max_drift

    @classmethod
    def from_instruments(
        cls,
        instruments: tuple[Instrument, ...] = DEFAULT_INSTRUMENTS,
        rng: random.Random | None = None,
    ) -> "SimulatedPriceSource":
        return cls({item.instrument_id: item.reference_price for item in instruments}, rng=rng)

    def tick(self) -> dict[str, float]:
        updated: dict[str, float] = {}
        for instrument_id in self.instrument_ids():
            price = self.current_price(instrument_id)
            drift = self._rng.uniform(-self.max_drift, self.max_drift)
            updated[instrument_id] = price * (1 + drift)
            self.set_price(instrument_id, updated[instrument_id])
        return updated
