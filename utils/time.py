from __future__ import annotations

from datetime import datetime, timezone


SECONDS_PER_DAY = 86400


def ts_to_iso(timestamp: int | float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(timespec="seconds")
