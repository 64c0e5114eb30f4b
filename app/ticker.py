from __future__ import annotations

import threading

from app.engine import TradingEngine
from data.price_source import SimulatedPriceSource
from utils.logger import get_logger


logger = get_logger("app.ticker")


class MarkToMarketTicker:
    """Background loop that moves simulated prices and re-marks both accounts.

    A stale exchange overlay is refreshed on the same cadence.
    """

    def __init__(self, engine: TradingEngine, interval_seconds: float = 5.0) -> None:
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()

        def _runner() -> None:
            while not self._stop.is_set():
                self._stop.wait(timeout=self.interval_seconds)
                if self._stop.is_set():
                    break
                self.tick()

        self._thread = threading.Thread(target=_runner, daemon=True, name="mark-to-market")
        self._thread.start()
        logger.info("mark-to-market ticker started every %ss", self.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> None:
        try:
            if isinstance(self.engine.price_source, SimulatedPriceSource):
                self.engine.price_source.tick()
            self.engine.mark_to_market()
            if self.engine.exchange.needs_sync():
                self.engine.sync_exchange_data()
        except Exception:  # noqa: BLE001
            logger.exception("mark-to-market tick failed")
        self.ticks += 1
