from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable


TRADING_MODES = ("spot", "future")
EXCHANGE_CLIENTS = ("simulated", "bybit")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


@dataclass(frozen=True)
class RuntimeConfig:
    trading_mode: str
    tick_interval_seconds: float
    seed: int | None


@dataclass(frozen=True)
class LedgerConfig:
    initial_balance: float
    default_leverage: int


@dataclass(frozen=True)
class BacktestConfig:
    default_period: str
    initial_balance: float
    include_fees: bool
    fee_percentage: float
    ranking_period: str


@dataclass(frozen=True)
class ExchangeConfig:
    exchange: str
    client: str
    api_key: str
    api_secret: str
    rest_url: str
    timeout_seconds: float
    recv_window: int
    sync_delay_seconds: float
    stale_after_seconds: float


@dataclass(frozen=True)
class PathsConfig:
    state_dir: Path
    state_db: Path
    logs_dir: Path


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    json: bool
    console: bool


@dataclass(frozen=True)
class AppConfig:
    config_path: Path
    runtime: RuntimeConfig
    ledger: LedgerConfig
    backtest: BacktestConfig
    exchange: ExchangeConfig
    paths: PathsConfig
    logging: LoggingConfig

    def validate(self) -> None:
        if self.runtime.trading_mode not in TRADING_MODES:
            raise ValueError(f"Unsupported trading mode: {self.runtime.trading_mode}")
        if self.runtime.tick_interval_seconds <= 0:
            raise ValueError("runtime.tick_interval_seconds must be > 0")
        if self.ledger.initial_balance <= 0:
            raise ValueError("ledger.initial_balance must be greater than 0")
        if self.ledger.default_leverage < 1:
            raise ValueError("ledger.default_leverage must be >= 1")
        if self.backtest.initial_balance <= 0:
            raise ValueError("backtest.initial_balance must be greater than 0")
        if self.backtest.fee_percentage < 0 or self.backtest.fee_percentage >= 100:
            raise ValueError("backtest.fee_percentage must be within [0, 100)")
        if self.exchange.client not in EXCHANGE_CLIENTS:
            raise ValueError(f"Unsupported exchange client: {self.exchange.client}")
        if self.exchange.timeout_seconds <= 0:
            raise ValueError("exchange.timeout_seconds must be > 0")
        if self.exchange.sync_delay_seconds < 0:
            raise ValueError("exchange.sync_delay_seconds must be >= 0")
        if self.exchange.stale_after_seconds < 0:
            raise ValueError("exchange.stale_after_seconds must be >= 0")
        if self.logging.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid logging level: {self.logging.level}")

    def with_trading_mode(self, mode: str) -> "AppConfig":
        updated = replace(self, runtime=replace(self.runtime, trading_mode=mode))
        updated.validate()
        return updated

    def with_seed(self, seed: int | None) -> "AppConfig":
        updated = replace(self, runtime=replace(self.runtime, seed=seed))
        updated.validate()
        return updated


def parse_runtime(section: dict[str, str]) -> RuntimeConfig:
    return RuntimeConfig(
        trading_mode=section.get("trading_mode", "spot").strip().lower(),
        tick_interval_seconds=float(section.get("tick_interval_seconds", "5")),
        seed=_as_optional_int(section.get("seed")),
    )


def parse_ledger(section: dict[str, str]) -> LedgerConfig:
    return LedgerConfig(
        initial_balance=float(section.get("initial_balance", "10000")),
        default_leverage=int(section.get("default_leverage", "10")),
    )


def parse_backtest(section: dict[str, str]) -> BacktestConfig:
    return BacktestConfig(
        default_period=section.get("default_period", "30d"),
        initial_balance=float(section.get("initial_balance", "10000")),
        include_fees=_as_bool(section.get("include_fees", "true")),
        fee_percentage=float(section.get("fee_percentage", "0.1")),
        ranking_period=section.get("ranking_period", "30d"),
    )


def parse_exchange(section: dict[str, str]) -> ExchangeConfig:
    return ExchangeConfig(
        exchange=section.get("exchange", "binance").strip().lower(),
        client=section.get("client", "simulated").strip().lower(),
        api_key=section.get("api_key", ""),
        api_secret=section.get("api_secret", ""),
        rest_url=section.get("rest_url", "https://api.bybit.com"),
        timeout_seconds=float(section.get("timeout_seconds", "10")),
        recv_window=int(section.get("recv_window", "5000")),
        sync_delay_seconds=float(section.get("sync_delay_seconds", "1.5")),
        stale_after_seconds=float(section.get("stale_after_seconds", "300")),
    )


def parse_paths(section: dict[str, str]) -> PathsConfig:
    return PathsConfig(
        state_dir=Path(section.get("state_dir", "runtime/state")),
        state_db=Path(section.get("state_db", "runtime/state/ledger.db")),
        logs_dir=Path(section.get("logs_dir", "runtime/logs")),
    )


def parse_logging(section: dict[str, str]) -> LoggingConfig:
    return LoggingConfig(
        level=section.get("level", "INFO").upper(),
        json=_as_bool(section.get("json", "true")),
        console=_as_bool(section.get("console", "true")),
    )


def ensure_sections(config: dict[str, dict[str, str]], required: Iterable[str]) -> None:
    missing = [section for section in required if section not in config]
    if missing:
        raise ValueError(f"Missing config sections: {', '.join(missing)}")
