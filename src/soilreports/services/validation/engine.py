from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ...domain.errors import ErrorCategory, ValidationIssue
from ...utils.normalize import cell_text, is_integer_like, is_missing, to_number
from .report import ValidationReport
from .rules import (
    DataType,
    NonEmptyCheck,
    RangeCheck,
    RuleCheck,
    TypeCheck,
    UniquenessCheck,
    ValidationRule,
)


_MAX_LISTED = 10


def _row_labels(df: pd.DataFrame, id_column: Optional[str]) -> List[str]:
    """Label rows by their id value, falling back to the 1-based row number."""
    ids = df[id_column].tolist() if id_column and id_column in df.columns else None
    labels: List[str] = []
    for i in range(len(df)):
        if ids is not None and not is_missing(ids[i]):
            labels.append(cell_text(ids[i]))
        else:
            labels.append(f"row {i + 1}")
    return labels


def _listing(items: Sequence[str]) -> str:
    shown = ", ".join(items[:_MAX_LISTED])
    if len(items) > _MAX_LISTED:
        shown += f", ... (+{len(items) - _MAX_LISTED} more)"
    return shown


def _check_non_empty(
    col: str, values: list, check: NonEmptyCheck, labels: List[str]
) -> Optional[ValidationIssue]:
    idxs = [i for i, v in enumerate(values) if is_missing(v)]
    if not idxs:
        return None
    return ValidationIssue(
        column=col,
        rule=check.source,
        message=f"'{col}' has {len(idxs)} missing value(s)",
        rows=tuple(labels[i] for i in idxs),
    )


def _check_type(
    col: str, values: list, check: TypeCheck, labels: List[str]
) -> Optional[ValidationIssue]:
    if check.data_type == DataType.INTEGER:
        bad = [i for i, v in enumerate(values) if not is_missing(v) and not is_integer_like(v)]
    elif check.data_type == DataType.NUMERIC:
        bad = [i for i, v in enumerate(values) if not is_missing(v) and to_number(v) is None]
    else:
        # character columns accept any non-missing value
        bad = []
    if not bad:
        return None
    return ValidationIssue(
        column=col,
        rule=ErrorCategory.DATA_TYPE.value,
        message=(
            f"'{col}' expects {check.data_type.value} values; {len(bad)} value(s) do not match "
            f"(rows: {_listing([labels[i] for i in bad])})"
        ),
        rows=tuple(labels[i] for i in bad),
    )


def _check_range(
    col: str, values: list, check: RangeCheck, labels: List[str]
) -> Optional[ValidationIssue]:
    bad: List[int] = []
    for i, v in enumerate(values):
        n = to_number(v)
        # Missing and non-numeric values are reported by the other checks
        if n is not None and not check.accepts(n):
            bad.append(i)
    if not bad:
        return None
    return ValidationIssue(
        column=col,
        rule=check.expression,
        message=(
            f"'{col}' has {len(bad)} value(s) violating '{check.expression}' "
            f"(rows: {_listing([f'{labels[i]}={cell_text(values[i])}' for i in bad])})"
        ),
        rows=tuple(labels[i] for i in bad),
    )


def _duplicate_detail(key: str, idxs: List[int], labels: List[str]) -> str:
    nums = ", ".join(str(i + 1) for i in idxs)
    ids = [labels[i] for i in idxs]
    # Keys on the id column itself would only repeat the key
    if all(label == key for label in ids):
        return f"{key} (rows {nums})"
    return f"{key} (rows {nums}: {', '.join(ids)})"


def _check_unique(
    col: str, df: pd.DataFrame, check: UniquenessCheck, labels: List[str]
) -> Optional[ValidationIssue]:
    absent = [c for c in check.columns if c not in df.columns]
    if absent:
        return ValidationIssue(
            column=col,
            rule=ErrorCategory.NO_DUPLICATES.value,
            message=f"'{col}' uniqueness key column(s) not found: {', '.join(absent)}",
        )

    groups: Dict[Tuple[str, ...], List[int]] = {}
    columns = [df[c].tolist() for c in check.columns]
    for i in range(len(df)):
        parts = [vals[i] for vals in columns]
        # Blank keys are the not_empty check's concern
        if any(is_missing(p) for p in parts):
            continue
        groups.setdefault(tuple(cell_text(p) for p in parts), []).append(i)

    dups = {k: rows for k, rows in groups.items() if len(rows) > 1}
    if not dups:
        return None
    keys = [" + ".join(k) for k in dups]
    rows = sorted(i for idxs in dups.values() for i in idxs)
    detail = [_duplicate_detail(" + ".join(k), idxs, labels) for k, idxs in dups.items()]
    return ValidationIssue(
        column=col,
        rule=ErrorCategory.NO_DUPLICATES.value,
        message=(
            f"'{col}' has {len(keys)} duplicated key(s) by {', '.join(check.columns)}: "
            f"{_listing(detail)}"
        ),
        rows=tuple(labels[i] for i in rows),
    )


def _apply(
    rule: ValidationRule, check: RuleCheck, df: pd.DataFrame, labels: List[str]
) -> Optional[ValidationIssue]:
    col = rule.variable
    values = df[col].tolist()
    if isinstance(check, NonEmptyCheck):
        return _check_non_empty(col, values, check, labels)
    if isinstance(check, TypeCheck):
        return _check_type(col, values, check, labels)
    if isinstance(check, RangeCheck):
        return _check_range(col, values, check, labels)
    if isinstance(check, UniquenessCheck):
        return _check_unique(col, df, check, labels)
    raise TypeError(f"Unsupported check: {check!r}")


def validate_dataset(
    df: pd.DataFrame,
    rules: Sequence[ValidationRule],
    sheet: str = "Data",
    id_column: Optional[str] = "sample_id",
) -> ValidationReport:
    """Apply every rule to ``df`` and collect all violations.

    Each rule is evaluated independently and nothing short-circuits, so the
    report lists every problem in one pass. A required (or ``not_empty``)
    column absent from the sheet is itself an error; absent optional columns
    are skipped. ``df`` is never modified.
    """
    labels = _row_labels(df, id_column)
    errors: List[ValidationIssue] = []

    for rule in rules:
        if rule.variable not in df.columns:
            presence = [c for c in rule.checks if isinstance(c, NonEmptyCheck)]
            if presence:
                errors.append(
                    ValidationIssue(
                        column=rule.variable,
                        rule=presence[0].source,
                        message=(
                            f"Required column '{rule.variable}' is missing from sheet '{sheet}'"
                        ),
                    )
                )
            continue
        for check in rule.checks:
            issue = _apply(rule, check, df, labels)
            if issue is not None:
                errors.append(issue)

    return ValidationReport(sheet=sheet, errors=errors)
