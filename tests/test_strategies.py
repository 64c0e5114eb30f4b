import pytest

from state.models import TradingMode
from strategies.book import StrategyBook
from strategies.catalog import (
    STRATEGY_TYPES,
    AiPatternRecognitionParams,
    MacdParams,
    TrendFollowingParams,
    parameters_to_dict,
    parse_parameters,
)
from strategies.params import normalize_key
from utils.errors import StrategyNotFound, ValidationError


def test_catalog_lists_every_type() -> None:
    assert set(STRATEGY_TYPES) == {
        "trend_following",
        "mean_reversion",
        "breakout",
        "rsi",
        "macd",
        "bollinger_bands",
        "ichimoku",
        "grid_trading",
        "ai_pattern_recognition",
        "scalping",
        "whale_watching",
    }


def test_parse_parameters_defaults_and_coercion() -> None:
    assert parse_parameters("trend_following") == TrendFollowingParams(period=14, threshold=2.0)
    macd = parse_parameters("macd", {"fastPeriod": "8", "slow_period": 21.0})
    assert macd == MacdParams(fast_period=8, slow_period=21, signal_period=9)
    assert isinstance(macd.fast_period, int)
    ai = parse_parameters("ai_pattern_recognition", {"confidence": 80})
    assert ai == AiPatternRecognitionParams(confidence=80.0)


def test_parse_parameters_rejects_bad_input() -> None:
    with pytest.raises(ValidationError):
        parse_parameters("martingale")
    with pytest.raises(ValidationError):
        parse_parameters("rsi", {"lookback": 3})
    with pytest.raises(ValidationError):
        parse_parameters("rsi", {"period": 2.5})
    with pytest.raises(ValidationError):
        parse_parameters("rsi", {"oversold": 80, "overbought": 20})
    with pytest.raises(ValidationError):
        parse_parameters("macd", {"fast_period": 30})


def test_parameters_to_dict() -> None:
    assert parameters_to_dict(parse_parameters("breakout")) == {"lookback": 30, "threshold": 5.0}


def test_normalize_key() -> None:
    assert normalize_key("maxTradesPerDay") == "max_trades_per_day"
    assert normalize_key("std_dev") == "std_dev"


def test_book_add_and_get() -> None:
    book = StrategyBook(clock=lambda: 1_700_000_000)
    strategy = book.add_strategy("Trend BTC", "bitcoin", "trend_following", trading_mode="future")
    assert strategy.created_at == 1_700_000_000
    assert strategy.trading_mode is TradingMode.FUTURE
    assert book.get(strategy.strategy_id) == strategy
    with pytest.raises(StrategyNotFound):
        book.get("missing")
    with pytest.raises(ValidationError):
        book.add_strategy("", "bitcoin", "rsi")


def test_book_toggle_and_active_for() -> None:
    book = StrategyBook()
    spot = book.add_strategy("Spot", "bitcoin", "rsi", trading_mode="spot")
    anywhere = book.add_strategy("Any", "ethereum", "macd")
    book.add_strategy("Future", "bitcoin", "breakout", trading_mode="future")

    assert [s.strategy_id for s in book.active_for("spot")] == [spot.strategy_id, anywhere.strategy_id]
    assert book.toggle(spot.strategy_id).active is False
    assert [s.strategy_id for s in book.active_for("spot")] == [anywhere.strategy_id]


def test_book_update() -> None:
    book = StrategyBook()
    strategy = book.add_strategy("RSI", "bitcoin", "rsi")

    updated = book.update(strategy.strategy_id, name="RSI fast", parameters={"period": 7})
    assert updated.name == "RSI fast"
    assert updated.parameters.period == 7

    switched = book.update(strategy.strategy_id, type_id="bollinger_bands")
    assert parameters_to_dict(switched.parameters) == {"period": 20, "std_dev": 2.0}

    with pytest.raises(ValidationError):
        book.update(strategy.strategy_id, strategy_id="other")
    with pytest.raises(ValidationError):
        book.update(strategy.strategy_id, parameters=MacdParams())


def test_book_returns_copies() -> None:
    book = StrategyBook()
    strategy = book.add_strategy("RSI", "bitcoin", "rsi")
    listed = book.list()[0]
    listed.name = "mutated"
    assert book.get(strategy.strategy_id).name == "RSI"


def test_book_remove_is_idempotent_and_notifies() -> None:
    book = StrategyBook()
    snapshots = []
    book.add_listener(snapshots.append)
    strategy = book.add_strategy("RSI", "bitcoin", "rsi")

    assert book.remove(strategy.strategy_id) is True
    assert book.remove(strategy.strategy_id) is False
    assert len(snapshots) == 2
    assert snapshots[-1] == []
