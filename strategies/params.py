from __future__ import annotations

import re
from typing import Any

from utils.errors import ValidationError


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def normalize_key(key: str) -> str:
    """``fastPeriod`` -> ``fast_period``; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key.strip()).lower()


def require_int(key: str, value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Strategy param {key} must be an integer, got {value!r}") from None
    if not number.is_integer():
        raise ValidationError(f"Strategy param {key} must be an integer, got {value!r}")
    return int(number)


def require_float(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Strategy param {key} must be a number, got {value!r}") from None


def require_str(key: str, value: Any) -> str:
    if value is None:
        raise ValidationError(f"Strategy param {key} must be a string")
    return str(value)


COERCERS = {
    "int": require_int,
    "float": require_float,
    "str": require_str,
}
