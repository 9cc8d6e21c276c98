from __future__ import annotations

from typing import List

# Row-identity column synthesized by the header mapper
FIELD_OR_AVERAGE = "Field or Average"

# Header keys that identify rows rather than measurements; never unit-merged
ID_KEYS: List[str] = [FIELD_OR_AVERAGE, "Texture"]

REQUIRED_DICTIONARY: List[str] = ["column_name", "measurement_group", "abbr", "unit"]

# Columns the header mapper needs from a dictionary
HEADER_COLUMNS: List[str] = ["abbr", "unit"]

RULE_COLUMNS: List[str] = [
    "sheet",
    "variable",
    "unique_by",
    "required",
    "data_type",
    "description",
    "validation_rule",
]

MISSING_TOKENS = frozenset({"", "na", "n/a", "nan", "null", "none", "<na>"})
