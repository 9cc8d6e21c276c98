"""Presentation formatting for summary tables.

Two independent pieces feed a ``FormattedTable``:

- backgrounds: each numeric body cell is compared to the baseline (project
  average) row, which must be the last row of the table;
- unit merge: measurement columns sharing a non-empty unit get one merged unit
  cell per adjacent run and a rule drawn beneath them.

The result is plain data (style classes, spans, colours) for an external
renderer; nothing here writes documents.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from ...domain.schema_defs import ID_KEYS
from .headers import HeaderSpec, compose_header


ABOVE_BASELINE = "above-baseline"
BELOW_BASELINE = "below-baseline"
NEUTRAL = "neutral"


@dataclass(frozen=True)
class TableStyle:
    lighter_color: str = "#F2F0E6"
    darker_color: str = "#CCC29C"
    header_color: str = "#023B2C"
    header_text_color: str = "#FFFFFF"
    border_color: str = "#3E3D3D"
    unit_rule_color: str = "#FFFFFF"
    header_font: str = "Georgia"
    body_font: str = "Helvetica"

    def color_for(self, style_class: str) -> Optional[str]:
        if style_class == ABOVE_BASELINE:
            return self.darker_color
        if style_class == BELOW_BASELINE:
            return self.lighter_color
        return None


@dataclass(frozen=True)
class FootnoteRun:
    text: str
    highlight: Optional[str] = None


FOOTNOTES: Dict[str, Tuple[FootnoteRun, ...]] = {
    "English": (
        FootnoteRun("Values greater than or equal to project average have "),
        FootnoteRun("darker backgrounds.", ABOVE_BASELINE),
        FootnoteRun("\nValues less than project average have "),
        FootnoteRun("lighter backgrounds.", BELOW_BASELINE),
    ),
    "Spanish": (
        FootnoteRun("Valores ≥ promedio de proyectos tienen "),
        FootnoteRun("fondos más oscuros.", ABOVE_BASELINE),
        FootnoteRun("\nValores < promedio de proyectos tienen "),
        FootnoteRun("fondos más claros.", BELOW_BASELINE),
    ),
}


@dataclass(frozen=True)
class UnitSpan:
    start: int  # inclusive column position
    end: int  # inclusive column position
    unit: str


@dataclass(frozen=True)
class FormattedTable:
    name: str
    table: pd.DataFrame
    header: HeaderSpec
    backgrounds: List[List[str]]
    unit_spans: List[UnitSpan]
    rule_columns: List[int]
    footnote: Tuple[FootnoteRun, ...]
    language: str = "English"
    style: TableStyle = field(default_factory=TableStyle)

    def footnote_text(self) -> str:
        return "".join(r.text for r in self.footnote)


def footnote(language: str = "English") -> Tuple[FootnoteRun, ...]:
    if language not in FOOTNOTES:
        raise ValueError(
            f"Unsupported footnote language {language!r}; choose one of: {', '.join(FOOTNOTES)}"
        )
    return FOOTNOTES[language]


def _numeric_positions(table: pd.DataFrame) -> List[int]:
    out: List[int] = []
    for j in range(table.shape[1]):
        s = table.iloc[:, j]
        if is_numeric_dtype(s) and not is_bool_dtype(s):
            out.append(j)
    return out


def assign_backgrounds(
    table: pd.DataFrame, fallback: str = BELOW_BASELINE
) -> List[List[str]]:
    """Classify body cells against the last (baseline) row.

    Values >= the column's baseline are ``above-baseline``, smaller ones
    ``below-baseline``. The baseline row, non-numeric columns and cells where
    the value or baseline is missing stay ``neutral``. Tables with fewer than
    two rows or no numeric column get ``fallback`` everywhere.
    """
    n_rows, n_cols = table.shape
    numeric = _numeric_positions(table)
    if n_rows < 2 or not numeric:
        return [[fallback] * n_cols for _ in range(n_rows)]

    grid = [[NEUTRAL] * n_cols for _ in range(n_rows)]
    base = n_rows - 1
    for j in numeric:
        col = table.iloc[:, j]
        baseline = col.iloc[base]
        if pd.isna(baseline):
            continue
        for i in range(base):
            value = col.iloc[i]
            if pd.isna(value):
                continue
            grid[i][j] = ABOVE_BASELINE if value >= baseline else BELOW_BASELINE
    return grid


def unit_rule_columns(header: HeaderSpec, id_keys: Sequence[str] = ID_KEYS) -> List[int]:
    """Positions of measurement columns whose non-empty unit is shared."""
    eligible = [r.key not in id_keys and r.unit != "" for r in header]
    counts = Counter(r.unit for r, ok in zip(header, eligible, strict=True) if ok)
    return [
        j
        for j, (r, ok) in enumerate(zip(header, eligible, strict=True))
        if ok and counts[r.unit] > 1
    ]


def unit_merge_spans(header: HeaderSpec, id_keys: Sequence[str] = ID_KEYS) -> List[UnitSpan]:
    """Runs of adjacent shared-unit columns that merge into one unit cell."""
    rule_cols = set(unit_rule_columns(header, id_keys))
    spans: List[UnitSpan] = []
    j = 0
    while j < len(header):
        if j not in rule_cols:
            j += 1
            continue
        end = j
        while end + 1 in rule_cols and header[end + 1].unit == header[j].unit:
            end += 1
        if end > j:
            spans.append(UnitSpan(start=j, end=end, unit=header[j].unit))
        j = end + 1
    return spans


def format_table(
    table: pd.DataFrame,
    header: HeaderSpec,
    language: str = "English",
    name: str = "",
    style: Optional[TableStyle] = None,
    id_keys: Sequence[str] = ID_KEYS,
) -> FormattedTable:
    notes = footnote(language)
    composed = compose_header(list(table.columns), header, id_keys)
    return FormattedTable(
        name=name,
        table=table,
        header=composed,
        backgrounds=assign_backgrounds(table),
        unit_spans=unit_merge_spans(composed, id_keys),
        rule_columns=unit_rule_columns(composed, id_keys),
        footnote=notes,
        language=language,
        style=style or TableStyle(),
    )
