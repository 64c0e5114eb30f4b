from __future__ import annotations

from dataclasses import replace

from config.config_schema import EXCHANGE_CLIENTS, TRADING_MODES, AppConfig
from exchanges.base_exchange import SUPPORTED_EXCHANGES


class ConsoleMenu:
    """Interactive prompt for the settings people change between sessions."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def run(self) -> AppConfig:
        print("=== Paper Ledger Console ===")
        mode = self._choose("Trading mode", TRADING_MODES, self.config.runtime.trading_mode)
        client = self._choose("Exchange client", EXCHANGE_CLIENTS, self.config.exchange.client)
        exchange = self._choose("Exchange", SUPPORTED_EXCHANGES, self.config.exchange.exchange)
        period = self._prompt("Ranking period", self.config.backtest.ranking_period)

        updated = replace(
            self.config,
            runtime=replace(self.config.runtime, trading_mode=mode),
            exchange=replace(self.config.exchange, client=client, exchange=exchange),
            backtest=replace(self.config.backtest, ranking_period=period),
        )
        updated.validate()
        self._persist_config(updated)
        return updated

    @staticmethod
    def _prompt(label: str, default: str) -> str:
        value = input(f"{label} [{default}]: ").strip()
        return value or default

    @classmethod
    def _choose(cls, label: str, options: tuple[str, ...], default: str) -> str:
        value = cls._prompt(f"{label} ({'/'.join(options)})", default).lower()
        if value not in options:
            print(f"Unknown {label.lower()} {value!r}, keeping {default}.")
            return default
        return value

    @staticmethod
    def _persist_config(config: AppConfig) -> None:
        updates = {
            "runtime": {"trading_mode": config.runtime.trading_mode},
            "exchange": {"client": config.exchange.client, "exchange": config.exchange.exchange},
            "backtest": {"ranking_period": config.backtest.ranking_period},
        }
        path = config.config_path
        lines = path.read_text(encoding="utf-8").splitlines(keepends=True)
        section = None
        out: list[str] = []
        for line in lines:
            stripped = line.strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                section = stripped[1:-1].lower()
                out.append(line)
                continue
            if section in updates and "=" in line:
                key = line.split("=", 1)[0].strip()
                if key in updates[section]:
                    out.append(f"{key} = {updates[section][key]}\n")
                    continue
            out.append(line)
        path.write_text("".join(out), encoding="utf-8")
