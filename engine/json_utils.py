"""JSON helpers that never emit NaN/Infinity or non-serializable values."""

from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any


def safe_json(value: Any) -> Any:
    """Return a JSON-safe copy of ``value``.

    Non-finite floats become ``None``, enums become their values, tuples and
    sets become lists, and any other unknown object becomes its ``str``.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Enum):
        return safe_json(value.value)
    if isinstance(value, dict):
        return {str(key): safe_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [safe_json(item) for item in value]
    return str(value)


def safe_json_dumps(value: Any, **kwargs: Any) -> str:
    kwargs.setdefault("ensure_ascii", False)
    kwargs.setdefault("separators", (",", ":"))
    return json.dumps(safe_json(value), allow_nan=False, **kwargs)
