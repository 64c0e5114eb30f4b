from __future__ import annotations


class EngineError(Exception):
    """Base class for every recoverable engine error."""


class ValidationError(EngineError, ValueError):
    pass


class InsufficientFunds(ValidationError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(f"insufficient funds: required={required:.8f} available={available:.8f}")
        self.required = required
        self.available = available


class InsufficientHoldings(ValidationError):
    def __init__(self, instrument_id: str, required: float, held: float) -> None:
        super().__init__(f"insufficient holdings of {instrument_id}: required={required:.8f} held={held:.8f}")
        self.instrument_id = instrument_id
        self.required = required
        self.held = held


class NotFoundError(EngineError, LookupError):
    kind = "object"

    def __init__(self, key: str) -> None:
        super().__init__(f"{self.kind} not found: {key}")
        self.key = key


class StrategyNotFound(NotFoundError):
    kind = "strategy"


class PeriodNotFound(NotFoundError):
    kind = "period"


class PositionNotFound(NotFoundError):
    kind = "position"


class ResultNotFound(NotFoundError):
    kind = "backtest result"


class InstrumentNotFound(NotFoundError):
    kind = "instrument"


class SyncError(EngineError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AuthError(SyncError):
    pass
