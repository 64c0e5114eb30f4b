from __future__ import annotations

from dataclasses import asdict
from typing import Any

from state.models import (
    Account,
    BacktestPerformance,
    BacktestResult,
    Performance,
    Position,
    PositionSide,
    Strategy,
    Trade,
    TradeSide,
    TradingMode,
)
from strategies.catalog import parameters_to_dict, parse_parameters


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    payload = asdict(trade)
    payload["side"] = trade.side.value
    payload["trading_mode"] = trade.trading_mode.value
    return payload


def trade_from_dict(data: dict[str, Any]) -> Trade:
    return Trade(
        trade_id=str(data["trade_id"]),
        strategy_id=str(data["strategy_id"]),
        instrument_id=str(data["instrument_id"]),
        side=TradeSide(data["side"]),
        price=float(data["price"]),
        amount=float(data["amount"]),
        timestamp=int(data["timestamp"]),
        trading_mode=TradingMode(data["trading_mode"]),
        leverage=_optional_int(data.get("leverage")),
        pnl=_optional_float(data.get("pnl")),
    )


def position_to_dict(position: Position) -> dict[str, Any]:
    payload = asdict(position)
    payload["side"] = position.side.value
    payload["trading_mode"] = position.trading_mode.value
    return payload


def position_from_dict(data: dict[str, Any]) -> Position:
    return Position(
        position_id=str(data["position_id"]),
        strategy_id=str(data["strategy_id"]),
        instrument_id=str(data["instrument_id"]),
        side=PositionSide(data["side"]),
        entry_price=float(data["entry_price"]),
        amount=float(data["amount"]),
        timestamp=int(data["timestamp"]),
        trading_mode=TradingMode(data["trading_mode"]),
        leverage=_optional_int(data.get("leverage")),
        mark_price=float(data.get("mark_price", 0.0)),
        unrealized_pnl=float(data.get("unrealized_pnl", 0.0)),
        exchange_ref=data.get("exchange_ref"),
    )


def account_to_dict(account: Account) -> dict[str, Any]:
    return {
        "trading_mode": account.trading_mode.value,
        "balance": account.balance,
        "assets": dict(account.assets),
        "open_positions": [position_to_dict(p) for p in account.open_positions],
        "closed_trades": [trade_to_dict(t) for t in account.closed_trades],
        "performance": asdict(account.performance),
        "leverage": account.leverage,
    }


def account_from_dict(data: dict[str, Any]) -> Account:
    assets = {str(key): float(value) for key, value in dict(data.get("assets", {})).items() if float(value) > 0}
    return Account(
        trading_mode=TradingMode(data["trading_mode"]),
        balance=float(data["balance"]),
        assets=assets,
        open_positions=[position_from_dict(p) for p in data.get("open_positions", [])],
        closed_trades=[trade_from_dict(t) for t in data.get("closed_trades", [])],
        performance=Performance(**{k: float(v) for k, v in dict(data.get("performance", {})).items()}),
        leverage=_optional_int(data.get("leverage")),
    )


def strategy_to_dict(strategy: Strategy) -> dict[str, Any]:
    return {
        "strategy_id": strategy.strategy_id,
        "name": strategy.name,
        "instrument_id": strategy.instrument_id,
        "type_id": strategy.type_id,
        "parameters": parameters_to_dict(strategy.parameters),
        "active": strategy.active,
        "trading_mode": strategy.trading_mode.value if strategy.trading_mode else None,
        "persistent": strategy.persistent,
        "created_at": strategy.created_at,
    }


def strategy_from_dict(data: dict[str, Any]) -> Strategy:
    mode = data.get("trading_mode")
    return Strategy(
        strategy_id=str(data["strategy_id"]),
        name=str(data["name"]),
        instrument_id=str(data["instrument_id"]),
        type_id=str(data["type_id"]),
        parameters=parse_parameters(str(data["type_id"]), dict(data.get("parameters", {}))),
        active=bool(data.get("active", True)),
        trading_mode=TradingMode(mode) if mode else None,
        persistent=bool(data.get("persistent", True)),
        created_at=int(data.get("created_at", 0)),
    )


def result_to_dict(result: BacktestResult) -> dict[str, Any]:
    return {
        "result_id": result.result_id,
        "strategy_id": result.strategy_id,
        "start_ts": result.start_ts,
        "end_ts": result.end_ts,
        "initial_balance": result.initial_balance,
        "final_balance": result.final_balance,
        "trades": [trade_to_dict(t) for t in result.trades],
        "equity": list(result.equity),
        "performance": asdict(result.performance),
        "trading_mode": result.trading_mode.value,
    }


def result_from_dict(data: dict[str, Any]) -> BacktestResult:
    return BacktestResult(
        result_id=str(data["result_id"]),
        strategy_id=str(data["strategy_id"]),
        start_ts=int(data["start_ts"]),
        end_ts=int(data["end_ts"]),
        initial_balance=float(data["initial_balance"]),
        final_balance=float(data["final_balance"]),
        trades=tuple(trade_from_dict(t) for t in data.get("trades", [])),
        equity=tuple(float(v) for v in data.get("equity", [])),
        performance=BacktestPerformance(**{k: float(v) for k, v in dict(data["performance"]).items()}),
        trading_mode=TradingMode(data.get("trading_mode", TradingMode.SPOT.value)),
    )


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)
