from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import pandas as pd

from ...domain.errors import DictionaryError, HeaderCollisionError
from ...domain.schema_defs import FIELD_OR_AVERAGE, HEADER_COLUMNS, ID_KEYS
from ...utils.normalize import is_missing


@dataclass(frozen=True)
class HeaderRow:
    """One table column's two-row header: ``abbr`` on top, ``unit`` below."""

    abbr: str
    key: str
    unit: str = ""


HeaderSpec = List[HeaderRow]


def _check_unique_keys(keys: Sequence[str], what: str) -> None:
    seen: set[str] = set()
    for k in keys:
        if k in seen:
            raise HeaderCollisionError(
                k,
                f"Duplicate {what} '{k}'. ID columns that share a name with a measurement "
                "must be left out of the table before building headers",
            )
        seen.add(k)


def get_table_headers(dictionary: pd.DataFrame, group: str) -> HeaderSpec:
    """Header rows for one measurement group.

    Returns the synthetic ``Field or Average`` row followed by one row per
    measurement of the group (abbr = key = abbreviation, unit = unit) in
    dictionary order.

    Raises:
        DictionaryError: dictionary empty, required columns absent, or no rows
            for ``group`` (the message lists the available groups).
        HeaderCollisionError: two measurements share an abbreviation.
    """
    if dictionary is None or dictionary.empty:
        raise DictionaryError("Dictionary is null or empty")
    if "measurement_group" not in dictionary.columns:
        raise DictionaryError(
            "Dictionary missing 'measurement_group' column. Available columns: "
            + ", ".join(map(str, dictionary.columns))
        )
    missing = [c for c in HEADER_COLUMNS if c not in dictionary.columns]
    if missing:
        raise DictionaryError(f"Missing required columns in dictionary: {', '.join(missing)}")

    group_data = dictionary[dictionary["measurement_group"] == group]
    if group_data.empty:
        available = ", ".join(map(str, pd.unique(dictionary["measurement_group"].dropna())))
        raise DictionaryError(f"No data found for group '{group}'. Available groups: {available}")

    rows: HeaderSpec = [HeaderRow(abbr=FIELD_OR_AVERAGE, key=FIELD_OR_AVERAGE, unit="")]
    for abbr, unit in zip(group_data["abbr"].tolist(), group_data["unit"].tolist(), strict=True):
        a = str(abbr).strip()
        rows.append(HeaderRow(abbr=a, key=a, unit="" if is_missing(unit) else str(unit).strip()))

    _check_unique_keys([r.key for r in rows], "header key")
    return rows


def compose_header(
    columns: Sequence[str], header: HeaderSpec, id_keys: Sequence[str] = ID_KEYS
) -> HeaderSpec:
    """Resolve each table column to its header row, in table order.

    Columns are joined to ``header`` by key. ID columns missing from the
    header (e.g. ``Texture``) get their own name on top and no unit. Header
    rows whose key is not a table column are ignored.

    Raises:
        HeaderCollisionError: duplicated table columns or header keys.
        DictionaryError: a non-ID column has no header row.
    """
    cols = [str(c) for c in columns]
    _check_unique_keys(cols, "table column")
    _check_unique_keys([r.key for r in header], "header key")

    by_key: Dict[str, HeaderRow] = {r.key: r for r in header}
    out: HeaderSpec = []
    for col in cols:
        if col in by_key:
            out.append(by_key[col])
        elif col in id_keys:
            out.append(HeaderRow(abbr=col, key=col, unit=""))
        else:
            raise DictionaryError(
                f"Table column '{col}' has no header row. "
                f"Header keys: {', '.join(by_key) or '(none)'}"
            )
    return out
