"""
coerce.py - Total type coercion helpers.

Form inputs arrive as strings, blanks, or None. These helpers map any
input onto a value of the target type so that NaN, None and empty
strings never reach a stored or transmitted record.
"""

import math
import re
from typing import Any

_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_CURRENCY_NOISE = re.compile(r"[$,\s]")
_FALSE_STRINGS = frozenset({"", "false", "0", "no", "off"})


def coerce_number(value: Any) -> float:
    """
    Coerce any input to a finite float.

    Accepts currency-formatted strings ("$1,250.00"). Empty, non-numeric,
    NaN and infinite inputs all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if isinstance(value, str):
        cleaned = _CURRENCY_NOISE.sub("", value)
        match = _LEADING_FLOAT.match(cleaned)
        if match is None:
            return 0.0
        number = float(match.group(0))
        return number if math.isfinite(number) else 0.0
    return 0.0


def to_int(value: Any) -> int:
    """
    Integer coercion with parseInt semantics.

    Floats truncate toward zero, strings use their leading integer,
    anything unparseable becomes 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


def to_str(value: Any) -> str:
    """String coercion; None and False become the empty string."""
    if value is None or value is False:
        return ""
    return value if isinstance(value, str) else str(value)


def to_bool(value: Any) -> bool:
    """Boolean coercion that treats "false"/"0"/"" strings as False."""
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def is_numeric(value: Any) -> bool:
    """
    True when value reads as a number.

    Blank strings count as numeric (they coerce to 0); None does not.
    """
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return True
        try:
            return math.isfinite(float(stripped))
        except ValueError:
            return False
    return False
