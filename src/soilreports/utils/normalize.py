from __future__ import annotations

import math
import re
import unicodedata
from typing import Final, Optional

import pandas as pd

from ..domain.schema_defs import MISSING_TOKENS


# Thousands separators and stray unit suffixes seen in lab exports
_THOUSANDS_RE: Final = re.compile(r"(?<=\d),(?=\d{3}(?:\D|$))")
_NUMBER_RE: Final = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def normalize_text(value: str) -> str:
    """Unicode-normalize, trim and collapse internal whitespace."""
    s = unicodedata.normalize("NFKC", value)
    s = s.strip()
    s = re.sub(r"\s+", " ", s)
    return s


def is_missing(value: object) -> bool:
    """True for None/NaN/NA and for blank or missing-like strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return normalize_text(value).lower() in MISSING_TOKENS
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_number(value: object) -> Optional[float]:
    """Parse a cell as a number, returning None when it is not one.

    Booleans are rejected; strings may carry surrounding whitespace and
    thousands separators ('1,250.5').
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
        return None if math.isinf(f) else f
    s = normalize_text(str(value))
    s = _THOUSANDS_RE.sub("", s)
    if not _NUMBER_RE.match(s):
        return None
    return float(s)


def is_integer_like(value: object) -> bool:
    n = to_number(value)
    return n is not None and float(n).is_integer()


def cell_text(value: object) -> str:
    """Render a cell for messages: integral floats lose the trailing '.0'."""
    if is_missing(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return normalize_text(str(value))


def matches_value(series: pd.Series, wanted: object) -> pd.Series:
    """Element-wise equality that treats 2023, 2023.0 and '2023' alike."""
    n = to_number(wanted)
    if n is not None:
        return series.map(to_number) == n
    return series.map(cell_text) == cell_text(wanted)
