from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from exchanges.base_exchange import ExchangeClient
from state.models import ExchangeSnapshot, Position, TradingMode, trading_mode_from
from utils.errors import AuthError, SyncError
from utils.logger import get_logger, log_extra


logger = get_logger("exchange.sync")


@dataclass(frozen=True)
class ExchangeSettings:
    exchange: str
    api_key: str = ""
    api_secret: str = ""
    is_connected: bool = False
    last_connected: int | None = None
    last_synced: int | None = None
    connection_error: str | None = None
    sync_in_progress: bool = False

    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)


class ExchangeSyncAdapter:
    """Keeps a cached remote snapshot for display next to the local ledger.

    Nothing here writes to the ledger. A failed sync keeps the previous
    snapshot and records the reason in ``settings.connection_error``.
    """

    def __init__(
        self,
        client: ExchangeClient,
        exchange: str = "binance",
        api_key: str = "",
        api_secret: str = "",
        stale_after_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._settings = ExchangeSettings(exchange=exchange)
        self._snapshot: ExchangeSnapshot | None = None
        if api_key or api_secret:
            self.update_settings(api_key=api_key, api_secret=api_secret)

    @property
    def settings(self) -> ExchangeSettings:
        with self._lock:
            return self._settings

    @property
    def snapshot(self) -> ExchangeSnapshot | None:
        with self._lock:
            return self._snapshot

    def update_settings(
        self,
        exchange: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
    ) -> ExchangeSettings:
        with self._lock:
            current = self._settings
            updated = replace(
                current,
                exchange=exchange if exchange is not None else current.exchange,
                api_key=api_key if api_key is not None else current.api_key,
                api_secret=api_secret if api_secret is not None else current.api_secret,
                connection_error=None,
            )
            if api_key and api_secret:
                updated = replace(updated, is_connected=True, last_connected=int(self._clock()))
            self._settings = updated
            return updated

    def connect(self, exchange: str, api_key: str, api_secret: str) -> ExchangeSettings:
        try:
            self.client.connect(exchange, api_key, api_secret)
        except AuthError as exc:
            with self._lock:
                self._settings = replace(self._settings, is_connected=False, connection_error=exc.reason)
            logger.warning("exchange connect failed: %s", exc.reason)
            raise
        return self.update_settings(exchange=exchange, api_key=api_key, api_secret=api_secret)

    def disconnect(self) -> ExchangeSettings:
        with self._lock:
            self._settings = replace(
                self._settings,
                is_connected=False,
                last_synced=None,
                connection_error=None,
            )
            self._snapshot = None
            return self._settings

    def needs_sync(self) -> bool:
        settings = self.settings
        if not settings.is_connected:
            return False
        if settings.last_synced is None:
            return True
        return self._clock() - settings.last_synced > self.stale_after_seconds

    def sync(self, mode: TradingMode | str) -> ExchangeSnapshot:
        mode = trading_mode_from(mode)
        with self._lock:
            if self._settings.sync_in_progress:
                raise SyncError("sync already in progress")
            self._settings = replace(self._settings, sync_in_progress=True)
            settings = self._settings

        try:
            if not settings.is_connected or not settings.has_credentials():
                raise SyncError("No valid API credentials")
            if not self.client.is_connected(settings.exchange, settings.api_key):
                self.client.connect(settings.exchange, settings.api_key, settings.api_secret)
            snapshot = self.client.fetch_snapshot(mode)
        except SyncError as exc:
            self._record_failure(exc.reason)
            raise
        except Exception as exc:  # noqa: BLE001
            reason = f"Unknown error syncing data: {exc}"
            self._record_failure(reason)
            raise SyncError(reason) from exc

        with self._lock:
            self._snapshot = snapshot
            self._settings = replace(
                self._settings,
                last_synced=snapshot.synced_at,
                connection_error=None,
                sync_in_progress=False,
            )
        log_extra(
            logger,
            "exchange synced",
            trading_mode=mode.value,
            exchange=snapshot.exchange,
            balance=snapshot.balance,
            positions=len(snapshot.open_positions),
        )
        return snapshot

    def sync_exchange_data(self, mode: TradingMode | str) -> bool:
        try:
            self.sync(mode)
        except SyncError as exc:
            logger.warning("exchange sync failed: %s", exc.reason)
            return False
        return True

    def merge_positions(self, local: Iterable[Position], mode: TradingMode | None = None) -> list[Position]:
        merged = list(local)
        snapshot = self.snapshot
        if snapshot is None:
            return merged
        seen = {p.position_id for p in merged}
        for position in snapshot.open_positions:
            if mode is not None and position.trading_mode is not mode:
                continue
            if position.position_id not in seen:
                merged.append(position)
                seen.add(position.position_id)
        return merged

    def _record_failure(self, reason: str) -> None:
        with self._lock:
            self._settings = replace(self._settings, connection_error=reason, sync_in_progress=False)
