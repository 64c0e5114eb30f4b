from __future__ import annotations

from app.container import Container
from app.lifecycle import TradingApplication
from app.ticker import MarkToMarketTicker
from config.config_schema import AppConfig


class Bootstrap:
    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def build(self) -> TradingApplication:
        self.config.paths.state_dir.mkdir(parents=True, exist_ok=True)
        self.config.paths.state_db.parent.mkdir(parents=True, exist_ok=True)
        self.config.paths.logs_dir.mkdir(parents=True, exist_ok=True)
        container = Container(self.config)
        engine = container.engine()
        return TradingApplication(
            config=self.config,
            engine=engine,
            ticker=MarkToMarketTicker(engine, self.config.runtime.tick_interval_seconds),
        )
