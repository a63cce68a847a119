from __future__ import annotations

import math
from typing import Any, List, Optional

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_bool(value: Any, *, default: bool = False) -> bool:
    """Coerce a loosely-typed value into a boolean.

    settings.yaml is hand-edited, so values may arrive as strings like
    "false"/"0". Unknown strings fall back to the provided default to avoid
    the common pitfall where bool("false") == True.
    """
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        if math.isnan(value):
            return bool(default)
        return value != 0.0
    if isinstance(value, str):
        s = value.strip().lower()
        if not s:
            return bool(default)
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        try:
            return int(s) != 0
        except Exception:
            return bool(default)
    return bool(value)


def coerce_float(
    value: Any,
    *,
    default: float,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> float:
    try:
        n = float(value)
        if math.isnan(n):
            n = float(default)
    except Exception:
        n = float(default)
    if min_value is not None and n < min_value:
        n = min_value
    if max_value is not None and n > max_value:
        n = max_value
    return n


def coerce_int(value: Any, *, default: int, min_value: int, max_value: int) -> int:
    try:
        n = int(value)
    except Exception:
        n = int(default)
    if n < min_value:
        n = min_value
    if n > max_value:
        n = max_value
    return int(n)


def coerce_str_list(value: Any, *, default: List[str]) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return list(default)
    out = [str(x) for x in value if x is not None and str(x) != ""]
    return out or list(default)
