from __future__ import annotations

import configparser
from pathlib import Path

from config.config_schema import (
    AppConfig,
    PathsConfig,
    ensure_sections,
    parse_backtest,
    parse_exchange,
    parse_ledger,
    parse_logging,
    parse_paths,
    parse_runtime,
)
from config.secrets import load_env_file, resolve_mapping


REQUIRED_SECTIONS = ("runtime", "ledger", "backtest", "exchange", "paths", "logging")


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(str(path))

    if "secrets" in parser and "env_file" in parser["secrets"]:
        env_path = Path(parser["secrets"]["env_file"]).expanduser()
        if not env_path.is_absolute():
            env_path = (path.parent / env_path).resolve()
        load_env_file(env_path)

    ensure_sections(parser, REQUIRED_SECTIONS)

    runtime = parse_runtime(resolve_mapping(dict(parser["runtime"])))
    ledger = parse_ledger(resolve_mapping(dict(parser["ledger"])))
    backtest = parse_backtest(resolve_mapping(dict(parser["backtest"])))
    exchange = parse_exchange(resolve_mapping(dict(parser["exchange"])))
    paths = parse_paths(resolve_mapping(dict(parser["paths"])))
    logging_cfg = parse_logging(resolve_mapping(dict(parser["logging"])))

    base_dir = _resolve_base_dir(path)
    paths = PathsConfig(
        state_dir=_resolve_path(base_dir, paths.state_dir),
        state_db=_resolve_path(base_dir, paths.state_db),
        logs_dir=_resolve_path(base_dir, paths.logs_dir),
    )

    config = AppConfig(
        config_path=path.resolve(),
        runtime=runtime,
        ledger=ledger,
        backtest=backtest,
        exchange=exchange,
        paths=paths,
        logging=logging_cfg,
    )
    config.validate()
    return config


def _resolve_path(base_dir: Path, target: Path) -> Path:
    if target.is_absolute():
        return target
    return (base_dir / target).resolve()


def _resolve_base_dir(path: Path) -> Path:
    base = path.parent
    if base.name == "config":
        return base.parent
    return base
