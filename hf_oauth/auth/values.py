"""Checks for loosely typed JSON values."""

import math
from typing import Any


def clean_str(value: Any) -> str | None:
    """Trimmed string, or ``None`` for blank strings and non-strings."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
