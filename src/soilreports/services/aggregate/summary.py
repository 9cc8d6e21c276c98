from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd

from ...domain.errors import DictionaryError, HeaderCollisionError
from ...domain.schema_defs import FIELD_OR_AVERAGE, REQUIRED_DICTIONARY
from ...utils.normalize import cell_text, is_missing, matches_value


logger = logging.getLogger(__name__)

# Column names the long layout adds; Data columns must not reuse them
_LONG_COLUMNS = ("measurement", "value", *REQUIRED_DICTIONARY[1:])


def _require_dictionary(dictionary: pd.DataFrame) -> None:
    if dictionary is None or dictionary.empty:
        raise DictionaryError("Dictionary is empty")
    missing = [c for c in REQUIRED_DICTIONARY if c not in dictionary.columns]
    if missing:
        raise DictionaryError(
            f"Missing required columns in dictionary: {', '.join(missing)}. "
            f"Available columns: {', '.join(map(str, dictionary.columns))}"
        )


def pivot_longer(data: pd.DataFrame, dictionary: pd.DataFrame) -> pd.DataFrame:
    """Reshape wide Data into one row per (sample, measurement).

    Measurement columns are the dictionary's ``column_name`` entries present in
    ``data``; every other column is carried along as an identifier. Dictionary
    metadata (``measurement_group``, ``abbr``, ``unit``) is joined on the
    measurement name.
    """
    _require_dictionary(dictionary)
    clash = [c for c in data.columns if c in _LONG_COLUMNS]
    if clash:
        raise DictionaryError(
            f"Data columns {', '.join(map(str, clash))} clash with the long layout "
            f"({', '.join(_LONG_COLUMNS)}); rename them in the workbook"
        )
    meta = (
        dictionary[REQUIRED_DICTIONARY]
        .drop_duplicates("column_name", keep="last")
        .rename(columns={"column_name": "measurement"})
    )
    measurements = [m for m in meta["measurement"].tolist() if m in data.columns]
    id_vars = [c for c in data.columns if c not in measurements]

    long = data.melt(
        id_vars=id_vars, value_vars=measurements, var_name="measurement", value_name="value"
    )
    long = long.merge(meta, on="measurement", how="left")
    long["value"] = pd.to_numeric(long["value"], errors="coerce")
    long["unit"] = long["unit"].map(lambda u: "" if is_missing(u) else str(u))
    return long


def calculate_mode(values: Iterable[object]) -> Optional[object]:
    """Most frequent non-missing value; ties go to the first one encountered."""
    counts: Dict[object, int] = {}
    for v in values:
        if is_missing(v):
            continue
        counts[v] = counts.get(v, 0) + 1
    best: Optional[object] = None
    best_n = 0
    for v, n in counts.items():
        if n > best_n:
            best, best_n = v, n
    return best


def summarize_by_project(
    results_long: pd.DataFrame, categorical: str = "texture", label: str = "Texture"
) -> pd.DataFrame:
    """One row per measurement group with the mode of ``categorical``."""
    rows: List[Dict[str, object]] = []
    for group, g in results_long.groupby("measurement_group", sort=False):
        mode = calculate_mode(g[categorical]) if categorical in g.columns else None
        rows.append({"measurement_group": group, label: mode})
    return pd.DataFrame(rows, columns=["measurement_group", label])


def summarize_by_var(results_long: pd.DataFrame, var: Optional[str] = None) -> pd.DataFrame:
    """Mean ``value`` by measurement, optionally split by one extra column.

    Missing values are left out of the mean; a group with no values at all
    stays missing. When ``var`` is not a column of ``results_long`` the
    ungrouped summary is returned instead.
    """
    keys = ["measurement", "measurement_group"]
    if var is not None and var in results_long.columns:
        keys.append(var)
    elif var is not None:
        logger.debug(f"Grouping column '{var}' not in data; summarizing without it")

    values = pd.to_numeric(results_long["value"], errors="coerce")
    out = (
        results_long.assign(value=values)
        .groupby(keys, sort=False, dropna=False)["value"]
        .mean()
        .reset_index()
    )
    return out


def _table_row(
    label: str,
    g: pd.DataFrame,
    abbrs: List[str],
    texture_column: str,
    texture_label: Optional[str],
) -> Dict[str, object]:
    means = g.groupby("abbr", sort=False)["value"].mean()
    row: Dict[str, object] = {FIELD_OR_AVERAGE: label}
    if texture_label is not None:
        row[texture_label] = (
            calculate_mode(g[texture_column]) if texture_column in g.columns else None
        )
    for a in abbrs:
        row[a] = float(means[a]) if a in means.index else float("nan")
    return row


def build_group_table(
    results_long: pd.DataFrame,
    group: str,
    producer_id: object,
    year: object,
    *,
    producer_column: str = "producer_id",
    year_column: str = "year",
    field_column: str = "field_id",
    id_column: str = "sample_id",
    texture_column: str = "texture",
    texture_label: Optional[str] = "Texture",
    average_label: str = "Project Average",
    grouping_var: Optional[str] = None,
    digits: Optional[int] = 2,
) -> pd.DataFrame:
    """Build the summary table of one measurement group for one producer/year.

    Rows: one per field of the selected producer and year (the sample id is
    used when there is no field column), then one average per value of
    ``grouping_var`` when given, then the project average as the last row.
    Columns: ``Field or Average``, the texture ID column (unless
    ``texture_label`` is None), then one column per measurement abbreviation.

    Raises:
        DictionaryError: if the group has no measurements in the data.
        HeaderCollisionError: if ``texture_label`` equals a measurement
            abbreviation of the group; pass ``texture_label=None`` to leave the
            ID column out.
    """
    sub = results_long[results_long["measurement_group"] == group]
    if sub.empty:
        available = ", ".join(map(str, pd.unique(results_long["measurement_group"])))
        raise DictionaryError(f"No data found for group '{group}'. Available groups: {available}")

    abbrs = [str(a) for a in pd.unique(sub["abbr"])]
    if texture_label is not None and texture_label in abbrs:
        raise HeaderCollisionError(
            texture_label,
            f"ID column '{texture_label}' collides with a '{group}' measurement of the same name",
        )

    selected = sub[
        matches_value(sub[producer_column], producer_id) & matches_value(sub[year_column], year)
    ]
    row_key = field_column
    if field_column not in sub.columns or selected[field_column].map(is_missing).all():
        row_key = id_column

    rows: List[Dict[str, object]] = []
    for key, g in selected.groupby(row_key, sort=False, dropna=False):
        rows.append(_table_row(cell_text(key), g, abbrs, texture_column, texture_label))

    if grouping_var is not None and grouping_var in sub.columns:
        for key, g in sub.groupby(grouping_var, sort=False, dropna=True):
            label = f"{cell_text(key)} Average"
            rows.append(_table_row(label, g, abbrs, texture_column, texture_label))

    rows.append(_table_row(average_label, sub, abbrs, texture_column, texture_label))

    columns = [FIELD_OR_AVERAGE] + ([texture_label] if texture_label is not None else []) + abbrs
    table = pd.DataFrame(rows, columns=columns)
    table[abbrs] = table[abbrs].astype("float64")
    if digits is not None:
        table[abbrs] = table[abbrs].round(digits)
    return table
