import random

import pytest

from data.price_source import StaticPriceSource
from exchanges.base_exchange import ExchangeClient
from exchanges.simulated import BALANCE_RANGES, SimulatedExchangeClient
from exchanges.sync import ExchangeSyncAdapter
from state.models import ExchangeSnapshot, Position, PositionSide, TradingMode
from utils.errors import AuthError, SyncError


class Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FlakyClient(ExchangeClient):
    name = "flaky"

    def __init__(self) -> None:
        self.fail_with: Exception | None = None
        self.connected = False
        self.fetches = 0

    def connect(self, exchange: str, api_key: str, api_secret: str) -> None:
        if api_key == "bad":
            raise AuthError("invalid key")
        self.connected = True

    def is_connected(self, exchange: str, api_key: str) -> bool:
        return self.connected

    def fetch_snapshot(self, mode: TradingMode) -> ExchangeSnapshot:
        self.fetches += 1
        if self.fail_with is not None:
            raise self.fail_with
        return ExchangeSnapshot("binance", 1234.0 + self.fetches, (_position("remote", mode),), 1_700_000_000)


def _position(position_id: str, mode: TradingMode) -> Position:
    return Position(
        position_id=position_id,
        strategy_id="exchange",
        instrument_id="bitcoin",
        side=PositionSide.LONG,
        entry_price=100.0,
        amount=1.0,
        timestamp=0,
        trading_mode=mode,
        exchange_ref="ref",
    )


def _adapter(client: ExchangeClient | None = None, clock: Clock | None = None) -> ExchangeSyncAdapter:
    return ExchangeSyncAdapter(client or FlakyClient(), exchange="binance", clock=clock or Clock())


def test_sync_requires_credentials() -> None:
    adapter = _adapter()
    with pytest.raises(SyncError) as exc_info:
        adapter.sync("spot")
    assert exc_info.value.reason == "No valid API credentials"
    assert adapter.sync_exchange_data("spot") is False
    assert adapter.settings.connection_error == "No valid API credentials"


def test_update_settings_marks_connected_and_clears_error() -> None:
    adapter = _adapter()
    adapter.sync_exchange_data("spot")
    settings = adapter.update_settings(api_key="k", api_secret="s")
    assert settings.is_connected
    assert settings.connection_error is None
    assert settings.last_connected == 1_700_000_000


def test_successful_sync_caches_snapshot() -> None:
    client = FlakyClient()
    adapter = _adapter(client)
    adapter.update_settings(api_key="k", api_secret="s")

    snapshot = adapter.sync("future")

    assert client.connected
    assert snapshot.balance == 1235.0
    assert adapter.snapshot == snapshot
    assert adapter.settings.last_synced == snapshot.synced_at
    assert adapter.settings.sync_in_progress is False


def test_failed_sync_keeps_previous_snapshot() -> None:
    client = FlakyClient()
    adapter = _adapter(client)
    adapter.update_settings(api_key="k", api_secret="s")
    first = adapter.sync("spot")

    client.fail_with = SyncError("exchange timed out")
    assert adapter.sync_exchange_data("spot") is False
    assert adapter.snapshot == first
    assert adapter.settings.connection_error == "exchange timed out"

    client.fail_with = KeyError("balance")
    with pytest.raises(SyncError) as exc_info:
        adapter.sync("spot")
    assert exc_info.value.reason.startswith("Unknown error syncing data")
    assert adapter.snapshot == first
    assert adapter.settings.sync_in_progress is False


def test_concurrent_sync_is_refused() -> None:
    client = FlakyClient()
    adapter = _adapter(client)
    adapter.update_settings(api_key="k", api_secret="s")
    inner: list[Exception] = []

    fetch = client.fetch_snapshot

    def reentrant(mode: TradingMode) -> ExchangeSnapshot:
        try:
            adapter.sync(mode)
        except SyncError as exc:
            inner.append(exc)
        return fetch(mode)

    client.fetch_snapshot = reentrant
    adapter.sync("spot")

    assert len(inner) == 1
    assert inner[0].reason == "sync already in progress"
    assert client.fetches == 1


def test_connect_records_auth_failure() -> None:
    adapter = _adapter()
    with pytest.raises(AuthError):
        adapter.connect("binance", "bad", "secret")
    assert adapter.settings.connection_error == "invalid key"
    assert not adapter.settings.is_connected


def test_disconnect_clears_snapshot() -> None:
    adapter = _adapter()
    adapter.update_settings(api_key="k", api_secret="s")
    adapter.sync("spot")
    settings = adapter.disconnect()
    assert not settings.is_connected
    assert adapter.snapshot is None
    assert not adapter.needs_sync()


def test_needs_sync_after_stale_period() -> None:
    clock = Clock()
    adapter = _adapter(clock=clock)
    assert not adapter.needs_sync()
    adapter.update_settings(api_key="k", api_secret="s")
    assert adapter.needs_sync()
    adapter.sync("spot")
    assert not adapter.needs_sync()
    clock.now += 301
    assert adapter.needs_sync()


def test_merge_positions_unions_by_id_and_mode() -> None:
    adapter = _adapter()
    adapter.update_settings(api_key="k", api_secret="s")
    adapter.sync("spot")
    local = [_position("local", TradingMode.SPOT), _position("remote", TradingMode.SPOT)]

    merged = adapter.merge_positions(local, TradingMode.SPOT)
    assert [p.position_id for p in merged] == ["local", "remote"]
    assert adapter.merge_positions([], TradingMode.FUTURE) == []


def test_simulated_client_snapshot_bounds() -> None:
    prices = StaticPriceSource({"bitcoin": 65000.0, "ethereum": 3500.0})
    client = SimulatedExchangeClient(prices, rng=random.Random(4), latency_seconds=0)
    adapter = ExchangeSyncAdapter(client, exchange="okx", api_key="k", api_secret="s")

    snapshot = adapter.sync("future")

    low, width = BALANCE_RANGES["okx"]
    assert low <= snapshot.balance <= low + width
    assert 1 <= len(snapshot.open_positions) <= 5
    for position in snapshot.open_positions:
        current = prices.current_price(position.instrument_id)
        assert current * 0.9 <= position.entry_price <= current * 1.1
        assert position.trading_mode is TradingMode.FUTURE
        assert position.exchange_ref


def test_simulated_client_rejects_unknown_exchange() -> None:
    client = SimulatedExchangeClient(StaticPriceSource({"bitcoin": 1.0}), latency_seconds=0)
    with pytest.raises(AuthError):
        client.connect("kraken", "k", "s")
    with pytest.raises(SyncError):
        client.fetch_snapshot(TradingMode.SPOT)
