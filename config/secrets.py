from __future__ import annotations

import os
import re
from pathlib import Path


_ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def resolve_placeholders(value: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_PATTERN.sub(_replace, value)


def resolve_mapping(data: dict[str, str]) -> dict[str, str]:
    return {key: resolve_placeholders(value) for key, value in data.items()}


def load_env_file(path: Path) -> list[str]:
    """Export KEY=VALUE lines from ``path`` without overriding the environment.

    Returns the keys that were actually set.
    """
    loaded: list[str] = []
    if not path.exists():
        return loaded
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value
            loaded.append(key)
    return loaded


def mask_secret(value: str, visible: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
