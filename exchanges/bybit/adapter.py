from __future__ import annotations

import hashlib
import hmac
import time
from typing import Any, Callable

import requests

from data.price_source import DEFAULT_INSTRUMENTS
from exchanges.base_exchange import ExchangeClient, RateLimiter
from state.models import EXCHANGE_STRATEGY_ID, ExchangeSnapshot, Position, PositionSide, TradingMode
from utils.errors import AuthError, SyncError
from utils.logger import get_logger


logger = get_logger("exchange.bybit")

# retCodes Bybit uses for bad keys, bad signatures and missing permissions.
AUTH_RET_CODES = {10003, 10004, 10005, 10007, 33004}

SYMBOL_TO_INSTRUMENT = {f"{item.symbol}USDT": item.instrument_id for item in DEFAULT_INSTRUMENTS}


class BybitExchangeClient(ExchangeClient):
    name = "bybit"

    def __init__(
        self,
        rate_limiter: RateLimiter,
        base_url: str,
        timeout: float,
        recv_window: int,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.recv_window = recv_window
        self.session = session or requests.Session()
        self._clock = clock
        self.api_key = ""
        self.api_secret = ""

    def connect(self, exchange: str, api_key: str, api_secret: str) -> None:
        if exchange != self.name:
            raise AuthError(f"Bybit client cannot connect to {exchange}")
        if not api_key or not api_secret:
            raise AuthError("No valid API credentials")
        self.api_key = api_key
        self.api_secret = api_secret
        try:
            self._wallet()
        except AuthError:
            self.api_key = ""
            self.api_secret = ""
            raise
        logger.info("bybit credentials verified")

    def is_connected(self, exchange: str, api_key: str) -> bool:
        return exchange == self.name and bool(api_key) and self.api_key == api_key

    def fetch_snapshot(self, mode: TradingMode) -> ExchangeSnapshot:
        if not self.api_key or not self.api_secret:
            raise SyncError("Exchange not connected")
        wallet = self._wallet()
        balance = _parse_float(wallet.get("totalAvailableBalance") or wallet.get("totalEquity"))
        positions: list[Position] = []
        if mode is TradingMode.FUTURE:
            payload = self._request("/v5/position/list", {"category": "linear", "settleCoin": "USDT"})
            for item in payload.get("result", {}).get("list", []) or []:
                position = _position_from_item(item, mode, self._clock())
                if position is not None:
                    positions.append(position)
        return ExchangeSnapshot(
            exchange=self.name,
            balance=balance,
            open_positions=tuple(positions),
            synced_at=int(self._clock()),
        )

    def _wallet(self) -> dict[str, Any]:
        payload = self._request("/v5/account/wallet-balance", {"accountType": "UNIFIED"})
        items = payload.get("result", {}).get("list", []) or []
        return items[0] if items else {}

    def _request(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self.rate_limiter.allow():
            raise SyncError("Rate limit exceeded")
        timestamp = str(int(self._clock() * 1000))
        recv_window = str(self.recv_window)
        query = _query_string(params)
        sign = _sign(self.api_secret, f"{timestamp}{self.api_key}{recv_window}{query}")
        headers = {
            "X-BAPI-API-KEY": self.api_key,
            "X-BAPI-TIMESTAMP": timestamp,
            "X-BAPI-RECV-WINDOW": recv_window,
            "X-BAPI-SIGN": sign,
            "Content-Type": "application/json",
        }
        try:
            url = f"{self.base_url}{path}?{query}" if query else f"{self.base_url}{path}"
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SyncError(f"Bybit request failed: {exc}") from exc
        if response.status_code in (401, 403):
            raise AuthError(f"Bybit rejected credentials (HTTP {response.status_code})")
        try:
            response.raise_for_status()
            data = response.json()
        except (requests.HTTPError, ValueError) as exc:
            raise SyncError(f"Bybit response invalid: {exc}") from exc
        ret_code = _parse_int(data.get("retCode"))
        if ret_code in AUTH_RET_CODES:
            raise AuthError(f"Bybit auth error: {data.get('retMsg')}")
        if ret_code != 0:
            raise SyncError(f"Bybit error: {data.get('retMsg')}")
        return data


def _position_from_item(item: dict[str, Any], mode: TradingMode, now: float) -> Position | None:
    size = _parse_float(item.get("size"))
    if size <= 0:
        return None
    symbol = str(item.get("symbol", ""))
    created = _parse_int(item.get("createdTime"))
    return Position(
        position_id=f"exchange-{symbol}-{item.get('positionIdx', 0)}",
        strategy_id=EXCHANGE_STRATEGY_ID,
        instrument_id=SYMBOL_TO_INSTRUMENT.get(symbol, symbol.lower()),
        side=PositionSide.LONG if item.get("side") == "Buy" else PositionSide.SHORT,
        entry_price=_parse_float(item.get("avgPrice")),
        amount=size,
        timestamp=created // 1000 if created else int(now),
        trading_mode=mode,
        leverage=_parse_int(item.get("leverage")) or None,
        mark_price=_parse_float(item.get("markPrice")),
        unrealized_pnl=_parse_float(item.get("unrealisedPnl")),
        exchange_ref=f"bybit-{symbol}",
    )


def _parse_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_int(value: Any) -> int:
    return int(_parse_float(value))


def _query_string(params: dict[str, Any]) -> str:
    if not params:
        return ""
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def _sign(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
