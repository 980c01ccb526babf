"""Normalization helpers.

Centralizes defensive parsing of vendor scalars.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def safe_bool(value: Any) -> bool | None:
    """Parse the boolean spellings vendors use; ``None`` when unknown."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return None


def normalize_timestamp_ms(value: Any) -> int | None:
    """Normalize vendor timestamps to epoch milliseconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Seconds (< 1e11) -> milliseconds
    """

    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts < 1e11:
        ts *= 1000.0
    return int(round(ts))


def round_to(value: float, decimals: int) -> float:
    """Round half away from zero, as feeds expect."""
    factor = 10**decimals
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return rounded if value >= 0 else -rounded
