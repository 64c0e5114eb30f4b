from __future__ import annotations

from dataclasses import dataclass

from state.models import MANUAL_STRATEGY_ID, TradeSide, require_positive, trade_side_from
from utils.errors import ValidationError


@dataclass(frozen=True)
class TradeIntent:
    instrument_id: str
    side: TradeSide
    price: float
    amount: float
    leverage: int | None = None
    strategy_id: str = MANUAL_STRATEGY_ID

    @property
    def notional(self) -> float:
        return self.price * self.amount


def build_intent(
    instrument_id: str,
    side: str | TradeSide,
    price: float,
    amount: float,
    leverage: int | None = None,
    strategy_id: str | None = None,
) -> TradeIntent:
    if not instrument_id:
        raise ValidationError("instrument_id is required")
    if leverage is not None:
        if isinstance(leverage, bool) or int(leverage) != leverage or leverage < 1:
            raise ValidationError(f"leverage must be an integer >= 1, got {leverage!r}")
        leverage = int(leverage)
    return TradeIntent(
        instrument_id=instrument_id,
        side=trade_side_from(side),
        price=require_positive("price", price),
        amount=require_positive("amount", amount),
        leverage=leverage,
        strategy_id=strategy_id or MANUAL_STRATEGY_ID,
    )
