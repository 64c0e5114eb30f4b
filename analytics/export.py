from __future__ import annotations

from pathlib import Path

import pandas as pd

from analytics.collector import trades_frame
from state.models import BacktestResult
from utils.logger import get_logger


logger = get_logger("analytics.export")


def _filename(result: BacktestResult) -> str:
    return f"{result.strategy_id}_{result.result_id}.parquet"


def export_result(result: BacktestResult, base_dir: Path) -> Path:
    """Write a backtest's trades, with the equity after each trade, as Parquet."""
    frame = trades_frame(result.trades)
    if frame.empty:
        raise ValueError(f"backtest {result.result_id} has no trades to export")
    frame["equity"] = list(result.equity[1 : len(frame) + 1])
    frame["result_id"] = result.result_id

    base_dir.mkdir(parents=True, exist_ok=True)
    path = base_dir / _filename(result)
    frame.to_parquet(path, index=False, engine="pyarrow")
    logger.info("wrote parquet %s", path)
    return path


def read_export(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Export not found: {path}")
    return pd.read_parquet(path, engine="pyarrow")
