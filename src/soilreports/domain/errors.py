from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ConfigError(Exception):
    """Malformed or missing rule/dictionary configuration."""


class DictionaryError(Exception):
    """Requested measurement group or required dictionary columns are absent."""


class HeaderCollisionError(DictionaryError):
    """Two header rows (or table columns) resolve to the same join key."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key


class ErrorCategory(str, Enum):
    REQUIRED = "required"
    NOT_EMPTY = "not_empty"
    DATA_TYPE = "data_type"
    NO_DUPLICATES = "no_duplicates"


@dataclass(frozen=True)
class ValidationIssue:
    column: str
    rule: str
    message: str
    # Offending rows by id value, or "row N" (1-based) when the id is blank
    rows: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CoercionWarning:
    column: str
    row_index: int
    original_value: Optional[str]
    message: str
    # 'coerced' when a value was replaced, 'missing' when it was already empty
    kind: str = "coerced"
