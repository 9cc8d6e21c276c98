from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

import pandas as pd

from ...domain.errors import CoercionWarning
from ...utils.normalize import cell_text, is_missing, to_number


@dataclass(frozen=True)
class CleanResult:
    df: pd.DataFrame
    warnings: List[CoercionWarning]


def coerce_measurements(
    df: pd.DataFrame,
    measurement_columns: Sequence[str],
    excluded: Iterable[str] = (),
) -> CleanResult:
    """
    Coerce measurement columns to numbers on a copy of ``df``.
    - Non-numeric values become missing and yield a 'coerced' warning
    - Values already missing yield a 'missing' warning
    - Excluded columns (e.g. texture) and columns absent from ``df`` are untouched
    Rows and columns are never added or removed.
    """
    skip = set(excluded)
    warnings: List[CoercionWarning] = []
    df2 = df.copy()

    for col in measurement_columns:
        if col in skip or col not in df2.columns:
            continue
        values: List[float] = []
        for i, v in enumerate(df2[col].tolist()):
            if is_missing(v):
                warnings.append(
                    CoercionWarning(
                        column=col,
                        row_index=i,
                        original_value=None,
                        message=f"Row {i + 1}: {col} is missing",
                        kind="missing",
                    )
                )
                values.append(float("nan"))
                continue
            n = to_number(v)
            if n is None:
                raw = cell_text(v)
                warnings.append(
                    CoercionWarning(
                        column=col,
                        row_index=i,
                        original_value=raw,
                        message=(
                            f"Row {i + 1}: {col} value '{raw}' is not a number; set to missing"
                        ),
                        kind="coerced",
                    )
                )
                values.append(float("nan"))
                continue
            values.append(n)
        df2[col] = pd.Series(values, index=df2.index, dtype="float64")

    return CleanResult(df=df2, warnings=warnings)
