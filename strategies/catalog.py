"""Strategy types and their typed parameter sets.

Every strategy type is a frozen dataclass whose fields are that type's
parameters; ``type_id`` is the tag. ``parse_parameters`` builds the right
variant from a loose mapping (config files, persisted JSON, CLI flags).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Mapping, Union

from strategies.params import COERCERS, normalize_key
from utils.errors import ValidationError


@dataclass(frozen=True)
class TrendFollowingParams:
    type_id: ClassVar[str] = "trend_following"
    name: ClassVar[str] = "Trend Following"
    period: int = 14
    threshold: float = 2.0


@dataclass(frozen=True)
class MeanReversionParams:
    type_id: ClassVar[str] = "mean_reversion"
    name: ClassVar[str] = "Mean Reversion"
    period: int = 20
    deviation: float = 3.0


@dataclass(frozen=True)
class BreakoutParams:
    type_id: ClassVar[str] = "breakout"
    name: ClassVar[str] = "Breakout"
    lookback: int = 30
    threshold: float = 5.0


@dataclass(frozen=True)
class RsiParams:
    type_id: ClassVar[str] = "rsi"
    name: ClassVar[str] = "RSI Strategy"
    period: int = 14
    oversold: float = 30.0
    overbought: float = 70.0

    def __post_init__(self) -> None:
        if self.oversold >= self.overbought:
            raise ValidationError("rsi oversold level must be below overbought level")


@dataclass(frozen=True)
class MacdParams:
    type_id: ClassVar[str] = "macd"
    name: ClassVar[str] = "MACD Strategy"
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9

    def __post_init__(self) -> None:
        if self.fast_period >= self.slow_period:
            raise ValidationError("macd fast_period must be below slow_period")


@dataclass(frozen=True)
class BollingerBandsParams:
    type_id: ClassVar[str] = "bollinger_bands"
    name: ClassVar[str] = "Bollinger Bands"
    period: int = 20
    std_dev: float = 2.0


@dataclass(frozen=True)
class IchimokuParams:
    type_id: ClassVar[str] = "ichimoku"
    name: ClassVar[str] = "Ichimoku Cloud"
    conversion_period: int = 9
    base_period: int = 26
    lagging_span2_period: int = 52
    displacement: int = 26


@dataclass(frozen=True)
class GridTradingParams:
    type_id: ClassVar[str] = "grid_trading"
    name: ClassVar[str] = "Grid Trading"
    upper_limit: float = 10.0
    lower_limit: float = 10.0
    grid_levels: int = 5


@dataclass(frozen=True)
class AiPatternRecognitionParams:
    type_id: ClassVar[str] = "ai_pattern_recognition"
    name: ClassVar[str] = "AI Pattern Recognition"
    confidence: float = 75.0
    pattern_types: str = "head_shoulders,cup_handle,wedges"
    confirmation_indicator: str = "volume"


@dataclass(frozen=True)
class ScalpingParams:
    type_id: ClassVar[str] = "scalping"
    name: ClassVar[str] = "Scalping (High-Frequency)"
    profit_target: float = 0.5
    stop_loss: float = 0.3
    max_trades_per_day: int = 50
    timeframe: int = 5


@dataclass(frozen=True)
class WhaleWatchingParams:
    type_id: ClassVar[str] = "whale_watching"
    name: ClassVar[str] = "Smart Money / Whale Watching"
    min_transaction_size: float = 100000.0
    follow_timeframe: int = 24
    volume_threshold: float = 200.0


StrategyParameters = Union[
    TrendFollowingParams,
    MeanReversionParams,
    BreakoutParams,
    RsiParams,
    MacdParams,
    BollingerBandsParams,
    IchimokuParams,
    GridTradingParams,
    AiPatternRecognitionParams,
    ScalpingParams,
    WhaleWatchingParams,
]

STRATEGY_TYPES: dict[str, type] = {
    cls.type_id: cls
    for cls in (
        TrendFollowingParams,
        MeanReversionParams,
        BreakoutParams,
        RsiParams,
        MacdParams,
        BollingerBandsParams,
        IchimokuParams,
        GridTradingParams,
        AiPatternRecognitionParams,
        ScalpingParams,
        WhaleWatchingParams,
    )
}


def strategy_type(type_id: str) -> type:
    cls = STRATEGY_TYPES.get(type_id)
    if cls is None:
        raise ValidationError(f"unknown strategy type: {type_id!r}")
    return cls


def parse_parameters(type_id: str, raw: Mapping[str, Any] | None = None) -> StrategyParameters:
    cls = strategy_type(type_id)
    declared = {f.name: f for f in fields(cls)}
    values: dict[str, Any] = {}
    for key, value in (raw or {}).items():
        name = normalize_key(key)
        field_def = declared.get(name)
        if field_def is None:
            raise ValidationError(f"unknown parameter {key!r} for strategy type {type_id!r}")
        kind = field_def.type if isinstance(field_def.type, str) else field_def.type.__name__
        values[name] = COERCERS[kind](name, value)
    return cls(**values)


def parameters_to_dict(parameters: StrategyParameters) -> dict[str, Any]:
    return asdict(parameters)
