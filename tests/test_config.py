from pathlib import Path

import pytest

from config.loader import load_config
from config.secrets import mask_secret


CONFIG_TEXT = """
[runtime]
trading_mode = future
tick_interval_seconds = 2
seed = 7

[ledger]
initial_balance = 5000
default_leverage = 20

[backtest]
default_period = 90d
initial_balance = 2500
include_fees = false
fee_percentage = 0.2
ranking_period = 30d

[exchange]
exchange = bybit
client = simulated
api_key = ${TEST_LEDGER_KEY}
api_secret = ${TEST_LEDGER_SECRET}
rest_url = https://api.bybit.com
timeout_seconds = 5
recv_window = 5000
sync_delay_seconds = 0
stale_after_seconds = 120

[paths]
state_dir = runtime/state
state_db = runtime/state/ledger.db
logs_dir = runtime/logs

[logging]
level = debug
json = false
console = false

[secrets]
env_file = .env
"""


def _write(tmp_path: Path, text: str = CONFIG_TEXT) -> Path:
    path = tmp_path / "config.ini"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # registered so the value exported from .env is removed again on teardown
    monkeypatch.setenv("TEST_LEDGER_KEY", "placeholder")
    monkeypatch.delenv("TEST_LEDGER_KEY")
    monkeypatch.setenv("TEST_LEDGER_SECRET", "from-env")
    (tmp_path / ".env").write_text("export TEST_LEDGER_KEY=from-file\nTEST_LEDGER_SECRET=ignored\n", encoding="utf-8")

    config = load_config(_write(tmp_path))

    assert config.runtime.trading_mode == "future"
    assert config.runtime.tick_interval_seconds == 2.0
    assert config.runtime.seed == 7
    assert config.ledger.initial_balance == 5000.0
    assert config.ledger.default_leverage == 20
    assert config.backtest.default_period == "90d"
    assert config.backtest.include_fees is False
    assert config.exchange.api_key == "from-file"
    assert config.exchange.api_secret == "from-env"
    assert config.exchange.stale_after_seconds == 120.0
    assert config.logging.level == "DEBUG"
    assert config.paths.state_db == (tmp_path / "runtime/state/ledger.db").resolve()


def test_missing_section_is_rejected(tmp_path: Path) -> None:
    text = CONFIG_TEXT.replace("[ledger]\ninitial_balance = 5000\ndefault_leverage = 20\n", "")
    with pytest.raises(ValueError, match="ledger"):
        load_config(_write(tmp_path, text))


def test_invalid_trading_mode_is_rejected(tmp_path: Path) -> None:
    text = CONFIG_TEXT.replace("trading_mode = future", "trading_mode = margin")
    with pytest.raises(ValueError, match="trading mode"):
        load_config(_write(tmp_path, text))


def test_fee_outside_range_is_rejected(tmp_path: Path) -> None:
    text = CONFIG_TEXT.replace("fee_percentage = 0.2", "fee_percentage = 100")
    with pytest.raises(ValueError, match="fee_percentage"):
        load_config(_write(tmp_path, text))


def test_overrides_revalidate(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path))
    assert config.with_trading_mode("spot").runtime.trading_mode == "spot"
    assert config.with_seed(None).runtime.seed is None
    with pytest.raises(ValueError):
        config.with_trading_mode("options")


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.ini")


def test_mask_secret() -> None:
    assert mask_secret("") == ""
    assert mask_secret("abc") == "***"
    assert mask_secret("abcdefgh") == "****efgh"
