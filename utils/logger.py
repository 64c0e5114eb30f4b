from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from config.config_schema import LoggingConfig


# Named loggers that also get a dedicated file next to system.log.
DEDICATED_LOGS = {
    "ledger": "ledger.log",
    "backtest": "backtest.log",
    "exchange": "exchange.log",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "trading_mode"):
            payload["trading_mode"] = getattr(record, "trading_mode")
        if hasattr(record, "extra"):
            payload["extra"] = getattr(record, "extra")
        return json.dumps(payload, ensure_ascii=True, default=str)


class ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        mode = getattr(record, "trading_mode", None)
        prefix = f"[{record.levelname}] {record.name}"
        if mode:
            prefix += f" ({mode})"
        return f"{prefix}: {record.getMessage()}"


def _as_log_dir() -> Path:
    value = os.environ.get("PAPERLEDGER_LOG_DIR")
    if value:
        return Path(value)
    return Path("Logs")


def _formatter(config: LoggingConfig) -> logging.Formatter:
    return JsonFormatter() if config.json else ConsoleFormatter()


def configure_logging(config: LoggingConfig, log_dir: Path | None = None) -> None:
    log_dir = log_dir or _as_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(config.level)

    file_handler = logging.FileHandler(log_dir / "system.log")
    file_handler.setLevel(config.level)
    file_handler.setFormatter(_formatter(config))
    root.addHandler(file_handler)

    error_handler = logging.FileHandler(log_dir / "errors.log")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(_formatter(config))
    root.addHandler(error_handler)

    for name, filename in DEDICATED_LOGS.items():
        named = logging.getLogger(name)
        named.handlers.clear()
        handler = logging.FileHandler(log_dir / filename)
        handler.setLevel(config.level)
        handler.setFormatter(_formatter(config))
        named.addHandler(handler)
        named.propagate = True

    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(config.level)
        console_handler.setFormatter(ConsoleFormatter())
        root.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_extra(logger: logging.Logger, message: str, trading_mode: str | None = None, **extra: Any) -> None:
    safe_extra = {}
    for key, value in extra.items():
        if is_dataclass(value) and not isinstance(value, type):
            safe_extra[key] = asdict(value)
        else:
            safe_extra[key] = value
    payload: dict[str, Any] = {"extra": safe_extra}
    if trading_mode:
        payload["trading_mode"] = trading_mode
    logger.info(message, extra=payload)
