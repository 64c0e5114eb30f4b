from __future__ import annotations

import time
from dataclasses import dataclass

from state.models import ExchangeSnapshot, TradingMode


SUPPORTED_EXCHANGES = ("binance", "mexc", "okx", "bybit")


@dataclass
class RateLimiter:
    max_per_minute: int
    last_reset: float = 0.0
    tokens: int = 0

    def allow(self) -> bool:
        now = time.time()
        if now - self.last_reset > 60:
            self.tokens = self.max_per_minute
            self.last_reset = now
        if self.tokens <= 0:
            return False
        self.tokens -= 1
        return True


class ExchangeClient:
    """Read-only view of a remote exchange account.

    ``connect`` raises ``AuthError``; ``fetch_snapshot`` raises ``SyncError``.
    Neither retries on its own.
    """

    name: str = "base"

    def connect(self, exchange: str, api_key: str, api_secret: str) -> None:
        raise NotImplementedError

    def fetch_snapshot(self, mode: TradingMode) -> ExchangeSnapshot:
        raise NotImplementedError

    def is_connected(self, exchange: str, api_key: str) -> bool:
        return False
