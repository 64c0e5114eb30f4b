import hashlib
import hmac

import pytest

from exchanges.base_exchange import RateLimiter
from exchanges.bybit.adapter import BybitExchangeClient
from state.models import PositionSide, TradingMode
from utils.errors import AuthError, SyncError


WALLET = {"retCode": 0, "result": {"list": [{"totalAvailableBalance": "1520.5", "totalEquity": "1600"}]}}
POSITIONS = {
    "retCode": 0,
    "result": {
        "list": [
            {
                "symbol": "BTCUSDT",
                "side": "Sell",
                "size": "0.5",
                "avgPrice": "64000",
                "markPrice": "63000",
                "leverage": "5",
                "unrealisedPnl": "500",
                "createdTime": "1700000000000",
                "positionIdx": 0,
            },
            {"symbol": "ETHUSDT", "side": "Buy", "size": "0", "avgPrice": "0"},
        ]
    },
}


class DummyResponse:
    def __init__(self, payload: dict, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        return None

    def json(self) -> dict:
        return self.payload


class DummySession:
    def __init__(self, responses: dict[str, DummyResponse]) -> None:
        self.responses = responses
        self.requests: list[tuple[str, dict]] = []

    def get(self, url: str, headers: dict, timeout: float) -> DummyResponse:
        self.requests.append((url, headers))
        path = url.split("https://api.bybit.com", 1)[1].split("?", 1)[0]
        return self.responses[path]


def _client(responses: dict[str, DummyResponse]) -> tuple[BybitExchangeClient, DummySession]:
    session = DummySession(responses)
    client = BybitExchangeClient(
        RateLimiter(120),
        base_url="https://api.bybit.com/",
        timeout=5,
        recv_window=5000,
        session=session,
        clock=lambda: 1_700_000_100.0,
    )
    return client, session


def test_connect_signs_wallet_request() -> None:
    client, session = _client({"/v5/account/wallet-balance": DummyResponse(WALLET)})
    client.connect("bybit", "key", "secret")

    url, headers = session.requests[0]
    assert url == "https://api.bybit.com/v5/account/wallet-balance?accountType=UNIFIED"
    expected = hmac.new(b"secret", b"1700000100000key5000accountType=UNIFIED", hashlib.sha256).hexdigest()
    assert headers["X-BAPI-SIGN"] == expected
    assert headers["X-BAPI-API-KEY"] == "key"
    assert client.is_connected("bybit", "key")


def test_future_snapshot_reads_positions() -> None:
    client, _ = _client(
        {
            "/v5/account/wallet-balance": DummyResponse(WALLET),
            "/v5/position/list": DummyResponse(POSITIONS),
        }
    )
    client.connect("bybit", "key", "secret")
    snapshot = client.fetch_snapshot(TradingMode.FUTURE)

    assert snapshot.balance == 1520.5
    assert len(snapshot.open_positions) == 1
    position = snapshot.open_positions[0]
    assert position.instrument_id == "bitcoin"
    assert position.side is PositionSide.SHORT
    assert position.leverage == 5
    assert position.timestamp == 1_700_000_000
    assert position.unrealized_pnl == 500.0


def test_spot_snapshot_skips_position_list() -> None:
    client, session = _client({"/v5/account/wallet-balance": DummyResponse(WALLET)})
    client.connect("bybit", "key", "secret")
    snapshot = client.fetch_snapshot(TradingMode.SPOT)
    assert snapshot.open_positions == ()
    assert len(session.requests) == 2


def test_rejected_credentials_raise_auth_error() -> None:
    client, _ = _client({"/v5/account/wallet-balance": DummyResponse({"retCode": 10003, "retMsg": "API key is invalid."})})
    with pytest.raises(AuthError):
        client.connect("bybit", "key", "secret")
    assert not client.is_connected("bybit", "key")

    client, _ = _client({"/v5/account/wallet-balance": DummyResponse({}, status_code=401)})
    with pytest.raises(AuthError):
        client.connect("bybit", "key", "secret")


def test_other_errors_raise_sync_error() -> None:
    client, _ = _client({"/v5/account/wallet-balance": DummyResponse({"retCode": 10006, "retMsg": "Too many visits"})})
    with pytest.raises(SyncError) as exc_info:
        client.connect("bybit", "key", "secret")
    assert not isinstance(exc_info.value, AuthError)
    with pytest.raises(SyncError):
        client.fetch_snapshot(TradingMode.SPOT)


def test_connect_refuses_other_exchanges() -> None:
    client, _ = _client({})
    with pytest.raises(AuthError):
        client.connect("okx", "key", "secret")
