from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from app.engine import TradingEngine
from app.ticker import MarkToMarketTicker
from config.config_schema import AppConfig
from utils.logger import get_logger, log_extra


logger = get_logger("app.lifecycle")


@dataclass
class TradingApplication:
    config: AppConfig
    engine: TradingEngine
    ticker: MarkToMarketTicker

    def run(self, duration_seconds: float | None = None, view: Callable[[TradingEngine], None] | None = None) -> None:
        """Rank strategies, then keep the ledger marked until interrupted.

        ``view`` takes over the foreground (the dashboard); without one the
        loop idles until ``duration_seconds`` elapses or Ctrl+C.
        """
        mode = self.engine.active_trading_mode
        logger.info("starting paper ledger", extra={"trading_mode": mode.value})
        if self.engine.exchange.settings.has_credentials():
            self.engine.sync_exchange_data(mode)
        best = self.engine.start_trading(mode)
        if best is None:
            logger.info("no strategy selected; marking manual positions only", extra={"trading_mode": mode.value})
        self.ticker.start()
        started = time.monotonic()
        try:
            if view is not None:
                view(self.engine)
            else:
                while duration_seconds is None or time.monotonic() - started < duration_seconds:
                    time.sleep(min(1.0, self.config.runtime.tick_interval_seconds))
        except KeyboardInterrupt:
            logger.info("shutdown requested by user")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.ticker.stop(timeout=self.config.runtime.tick_interval_seconds)
        self.engine.stop_trading()
        for account in (self.engine.get_account("spot"), self.engine.get_account("future")):
            log_extra(
                logger,
                "final account state",
                trading_mode=account.trading_mode.value,
                balance=account.balance,
                open_positions=len(account.open_positions),
                closed_trades=len(account.closed_trades),
            )
        self.engine.close()
