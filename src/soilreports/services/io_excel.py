from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from ..domain.errors import ConfigError
from ..domain.schema_defs import REQUIRED_DICTIONARY
from ..utils.normalize import is_missing, normalize_text


@dataclass(frozen=True)
class TemplateData:
    data: pd.DataFrame
    dictionary: pd.DataFrame
    data_header_row_excel: int  # 1-based
    dictionary_header_row_excel: int  # 1-based


_SCAN_LIMIT = 50


def _row_matches_headers(row_vals: List[object], required: Sequence[str]) -> bool:
    """Check if row contains all required headers (case-insensitive)."""
    row_set = {normalize_text(v).lower() for v in row_vals if isinstance(v, str)}
    return all(col.lower() in row_set for col in required)


def _find_table(
    df_raw: pd.DataFrame, required: Sequence[str]
) -> tuple[pd.DataFrame, int] | None:
    """Find table by scanning the first _SCAN_LIMIT rows for its header row.

    Returns (table, header_index) with blank rows and unnamed columns dropped.
    """
    for idx in range(min(len(df_raw), _SCAN_LIMIT)):
        row = df_raw.iloc[idx].tolist()
        if not _row_matches_headers(row, required):
            continue
        names = [normalize_text(v) if isinstance(v, str) else "" for v in row]
        table = df_raw.iloc[idx + 1 :].copy()
        table.columns = names
        table = table.loc[:, [n != "" for n in names]]
        if not table.empty:
            blank = [all(is_missing(v) for v in r) for r in table.itertuples(index=False)]
            table = table[[not b for b in blank]]
        table = table.reset_index(drop=True)
        return table, idx
    return None


def _clean_text(value: object) -> str:
    return "" if is_missing(value) else normalize_text(str(value))


def _read_sheet(
    xls: pd.ExcelFile, name: str, required: Sequence[str], first_row_fallback: bool = False
) -> tuple[pd.DataFrame, int]:
    if name not in xls.sheet_names:
        raise ConfigError(
            f"Workbook has no '{name}' sheet. Sheets: {', '.join(map(str, xls.sheet_names))}"
        )
    raw = pd.read_excel(xls, sheet_name=name, header=None, dtype=object)
    found = _find_table(raw, required)
    if found is None and first_row_fallback and len(raw):
        # Let validation report the missing columns instead of failing here
        found = _find_table(raw, [])
    if found is None:
        raise ConfigError(
            f"Sheet '{name}': no header row with columns {', '.join(required)} "
            f"in the first {_SCAN_LIMIT} rows"
        )
    table, idx = found
    names = [str(c) for c in table.columns]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ConfigError(
            f"Sheet '{name}' has duplicate column headers: {', '.join(dupes)}. "
            "Rename or remove the repeated columns and upload again"
        )
    return table, idx + 1


def read_template_workbook(
    path: Path,
    data_sheet: str = "Data",
    dictionary_sheet: str = "Data Dictionary",
    data_markers: Sequence[str] = ("sample_id",),
) -> TemplateData:
    """Read the Data and Data Dictionary sheets of an uploaded template.

    Header rows may sit below title/instruction rows; the first row containing
    the marker columns is taken as the header. Cell values are kept as read
    (object dtype) so the cleaner sees the original text.
    """
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")
    with pd.ExcelFile(path) as xls:
        data, data_row = _read_sheet(xls, data_sheet, data_markers, first_row_fallback=True)
        dictionary, dict_row = _read_sheet(xls, dictionary_sheet, REQUIRED_DICTIONARY)
    dictionary.columns = [str(c).lower() for c in dictionary.columns]
    dictionary = dictionary[~dictionary["column_name"].map(is_missing)].reset_index(drop=True)
    for col in REQUIRED_DICTIONARY:
        dictionary[col] = dictionary[col].map(_clean_text)
    return TemplateData(
        data=data,
        dictionary=dictionary,
        data_header_row_excel=data_row,
        dictionary_header_row_excel=dict_row,
    )


class IOService:
    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger

    def read_template(
        self, path: Path, data_sheet: str, dictionary_sheet: str, id_column: str
    ) -> TemplateData:
        self.logger.info("Reading workbook", extra={"path": str(path)})
        tpl = read_template_workbook(path, data_sheet, dictionary_sheet, (id_column,))
        self.logger.info(
            f"Parsed workbook: {len(tpl.data)} data rows, {len(tpl.dictionary)} dictionary entries",
            extra={
                "data_header_row": tpl.data_header_row_excel,
                "dictionary_header_row": tpl.dictionary_header_row_excel,
            },
        )
        return tpl
