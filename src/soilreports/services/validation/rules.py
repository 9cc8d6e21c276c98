"""Declarative validation rules.

Rules come from a row-per-rule table (CSV or YAML) with the columns
``sheet, variable, unique_by, required, data_type, description,
validation_rule``. Each row is parsed once, at load time, into a
``ValidationRule`` holding a tuple of tagged checks:

- ``TypeCheck``: values must match ``data_type``
- ``NonEmptyCheck``: no missing values (from ``required`` or ``not_empty``)
- ``RangeCheck``: comparison against a numeric literal, e.g. ``>= 2000``
- ``UniquenessCheck``: no duplicated ``unique_by`` combinations

Free-text expressions outside that closed vocabulary are rejected with
``ConfigError`` so that a typo in the rule table fails at startup instead of
silently skipping a check.
"""

from __future__ import annotations

import logging
import operator
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
import yaml

from ...domain.errors import ConfigError, ErrorCategory
from ...domain.schema_defs import RULE_COLUMNS


logger = logging.getLogger(__name__)


class DataType(str, Enum):
    INTEGER = "integer"
    CHARACTER = "character"
    NUMERIC = "numeric"


OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "==": operator.eq,
    "!=": operator.ne,
}

TOKENS = ("not_empty", "no_duplicates")

_COMPARISON_RE = re.compile(r"^\s*(>=|<=|==|!=|>|<)\s*([+-]?(?:\d+\.?\d*|\.\d+))\s*$")


@dataclass(frozen=True)
class TypeCheck:
    data_type: DataType


@dataclass(frozen=True)
class NonEmptyCheck:
    # 'required' when attached from the required flag, else 'not_empty'
    source: str = ErrorCategory.NOT_EMPTY.value


@dataclass(frozen=True)
class RangeCheck:
    op: str
    literal: float

    @property
    def expression(self) -> str:
        lit = int(self.literal) if float(self.literal).is_integer() else self.literal
        return f"{self.op} {lit}"

    def accepts(self, value: float) -> bool:
        return OPERATORS[self.op](value, self.literal)


@dataclass(frozen=True)
class UniquenessCheck:
    columns: Tuple[str, ...]


RuleCheck = Union[TypeCheck, NonEmptyCheck, RangeCheck, UniquenessCheck]


@dataclass(frozen=True)
class ValidationRule:
    sheet: str
    variable: str
    unique_by: Optional[Tuple[str, ...]]
    required: bool
    data_type: DataType
    description: str
    validation_rule: str
    checks: Tuple[RuleCheck, ...]


def _text(value: object) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):  # type: ignore[arg-type]
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _parse_bool(value: object, where: str) -> bool:
    if isinstance(value, bool):
        return value
    s = _text(value).lower()
    if s in {"true", "t", "yes", "y", "1"}:
        return True
    if s in {"false", "f", "no", "n", "0", ""}:
        return False
    raise ConfigError(f"{where}: cannot read required flag {value!r}")


def _parse_unique_by(value: object) -> Optional[Tuple[str, ...]]:
    s = _text(value)
    if not s or s == "-":
        return None
    cols = tuple(c.strip() for c in re.split(r"[,+]", s) if c.strip())
    return cols or None


def parse_rule_expression(
    text: str, unique_by: Optional[Tuple[str, ...]] = None, variable: str = ""
) -> Tuple[RuleCheck, ...]:
    """Parse a ``validation_rule`` cell into checks.

    An empty expression yields no checks. A comparison (``>= 2000``) yields one
    ``RangeCheck``. Otherwise the text must be a comma-separated token set
    drawn from ``not_empty`` and ``no_duplicates``.

    Raises:
        ConfigError: if the expression is neither form.
    """
    s = (text or "").strip()
    if not s or s == "-":
        return ()
    m = _COMPARISON_RE.match(s)
    if m:
        return (RangeCheck(op=m.group(1), literal=float(m.group(2))),)

    checks: List[RuleCheck] = []
    for raw in s.split(","):
        token = raw.strip().lower()
        if token == "not_empty":
            checks.append(NonEmptyCheck(source=ErrorCategory.NOT_EMPTY.value))
        elif token == "no_duplicates":
            checks.append(UniquenessCheck(columns=unique_by or (variable,)))
        else:
            raise ConfigError(
                f"Unrecognized validation rule {text!r}: expected '<op> <number>' "
                f"or a comma-separated set of {', '.join(TOKENS)}"
            )
    return tuple(checks)


def build_rule(row: Mapping[str, object], where: str = "rule") -> ValidationRule:
    sheet = _text(row.get("sheet"))
    variable = _text(row.get("variable"))
    if not sheet or not variable:
        raise ConfigError(f"{where}: 'sheet' and 'variable' are required")

    raw_type = _text(row.get("data_type")).lower()
    allowed = ", ".join(t.value for t in DataType)
    if not raw_type:
        raise ConfigError(f"{where}: missing data_type for '{variable}' (expected {allowed})")
    try:
        data_type = DataType(raw_type)
    except ValueError:
        raise ConfigError(
            f"{where}: unknown data_type {raw_type!r} for '{variable}' (expected {allowed})"
        ) from None

    required = _parse_bool(row.get("required"), where)
    unique_by = _parse_unique_by(row.get("unique_by"))
    expression = _text(row.get("validation_rule"))
    try:
        parsed = parse_rule_expression(expression, unique_by, variable)
    except ConfigError as e:
        raise ConfigError(f"{where} ({sheet}/{variable}): {e}") from None

    checks: List[RuleCheck] = [TypeCheck(data_type)]
    if required:
        checks.append(NonEmptyCheck(source=ErrorCategory.REQUIRED.value))
    # not_empty is implied by the required flag
    checks.extend(c for c in parsed if not (required and isinstance(c, NonEmptyCheck)))

    return ValidationRule(
        sheet=sheet,
        variable=variable,
        unique_by=unique_by,
        required=required,
        data_type=data_type,
        description=_text(row.get("description")),
        validation_rule=expression,
        checks=tuple(checks),
    )


def _read_rule_rows(path: Path) -> List[Dict[str, object]]:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except (OSError, pd.errors.ParserError) as e:
            raise ConfigError(f"Failed to read rule table {path}: {e}") from e
        df.columns = [str(c).strip() for c in df.columns]
        missing = [c for c in ("sheet", "variable") if c not in df.columns]
        if missing:
            raise ConfigError(f"Rule table {path} is missing columns: {', '.join(missing)}")
        return [{k: r.get(k) for k in RULE_COLUMNS} for r in df.to_dict(orient="records")]
    if suffix in {".yaml", ".yml"}:
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read rule table {path}: {e}") from e
        rows = raw.get("rules") if isinstance(raw, dict) else raw
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ConfigError(f"Rule table {path} must hold a list of rules under 'rules:'")
        return [dict(r) for r in rows]
    raise ConfigError(f"Unsupported rule table format: {path.name} (use .csv or .yaml)")


class RuleRegistry:
    """Validation rules keyed by (sheet, variable), in load order."""

    def __init__(self, rules: Iterable[ValidationRule] = ()) -> None:
        self._rules: Dict[Tuple[str, str], ValidationRule] = {}
        for rule in rules:
            self.add(rule)

    def add(self, rule: ValidationRule) -> None:
        key = (rule.sheet, rule.variable)
        if key in self._rules:
            # Last-loaded wins; the rule keeps its original position
            logger.warning(
                f"Rule for '{rule.variable}' on sheet '{rule.sheet}' defined twice; "
                "keeping the last definition",
                extra={"sheet": rule.sheet, "variable": rule.variable},
            )
        self._rules[key] = rule

    def sheets(self) -> List[str]:
        seen: Dict[str, None] = {}
        for sheet, _ in self._rules:
            seen.setdefault(sheet, None)
        return list(seen)

    def rules_for(self, sheet: str) -> List[ValidationRule]:
        rules = [r for (s, _), r in self._rules.items() if s == sheet]
        if not rules:
            raise ConfigError(
                f"No validation rules for sheet '{sheet}'. "
                f"Sheets with rules: {', '.join(self.sheets()) or '(none)'}"
            )
        return rules

    def __len__(self) -> int:
        return len(self._rules)


def load_rules(path: Path) -> RuleRegistry:
    """Load and parse a rule table; fails fast on any malformed row."""
    if not path.exists():
        raise ConfigError(f"Rule table not found: {path}")
    rows = _read_rule_rows(path)
    registry = RuleRegistry()
    for i, row in enumerate(rows, start=1):
        registry.add(build_rule(row, where=f"{path.name} row {i}"))
    if not len(registry):
        raise ConfigError(f"Rule table {path} contains no rules")
    return registry
