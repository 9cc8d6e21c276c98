from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping, Optional, Sequence, Set

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .formatting import FormattedTable


_INVALID_TITLE_RE = re.compile(r"[\[\]:*?/\\]")


def _argb(color: str) -> str:
    """'#023B2C' -> 'FF023B2C' as openpyxl expects."""
    hex_part = color.lstrip("#").upper()
    return hex_part if len(hex_part) == 8 else f"FF{hex_part}"


def _sheet_title(name: str, used: Set[str]) -> str:
    base = _INVALID_TITLE_RE.sub("_", name).strip() or "Table"
    base = base[:31]
    title = base
    n = 2
    while title.lower() in used:
        suffix = f" ({n})"
        title = base[: 31 - len(suffix)] + suffix
        n += 1
    used.add(title.lower())
    return title


def write_formatted_table(ws: Worksheet, ft: FormattedTable) -> None:
    """Lay out one formatted table: two header rows, body, footnote.

    Shared-unit columns get one merged unit cell per adjacent run and a rule
    between the abbreviation row and the unit row.
    """
    style = ft.style
    header_fill = PatternFill("solid", fgColor=_argb(style.header_color))
    header_font = Font(name=style.header_font, bold=True, color=_argb(style.header_text_color))
    body_font = Font(name=style.body_font)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    rule = Side(style="thin", color=_argb(style.unit_rule_color))
    body_rule = Side(style="thin", color=_argb(style.border_color))

    for col_idx, h in enumerate(ft.header, start=1):
        for row_idx, text in ((1, h.abbr), (2, h.unit)):
            cell = ws.cell(row=row_idx, column=col_idx, value=text or None)
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = center

    for j in ft.rule_columns:
        ws.cell(row=1, column=j + 1).border = Border(bottom=rule)
    for span in ft.unit_spans:
        ws.merge_cells(
            start_row=2, start_column=span.start + 1, end_row=2, end_column=span.end + 1
        )

    n_cols = ft.table.shape[1]
    for i, values in enumerate(ft.table.itertuples(index=False), start=0):
        row_idx = i + 3
        for j, value in enumerate(values):
            if pd.isna(value):
                value = None
            cell = ws.cell(row=row_idx, column=j + 1, value=value)
            cell.font = Font(name=style.body_font, bold=True) if j == 0 else body_font
            cell.alignment = center
            cell.border = Border(bottom=body_rule)
            color = style.color_for(ft.backgrounds[i][j])
            if color is not None:
                cell.fill = PatternFill("solid", fgColor=_argb(color))

    note_row = len(ft.table) + 4
    note = ws.cell(row=note_row, column=1, value=ft.footnote_text())
    note.font = Font(name=style.body_font, italic=True)
    note.alignment = Alignment(wrap_text=True, vertical="top")
    if n_cols > 1:
        ws.merge_cells(start_row=note_row, start_column=1, end_row=note_row, end_column=n_cols)

    for idx, h in enumerate(ft.header, start=1):
        base = max(len(str(h.abbr)), len(str(h.unit)), 10) + 2
        ws.column_dimensions[get_column_letter(idx)].width = min(30, base)


def write_tables(
    tables: Sequence[FormattedTable],
    out_path: Path,
    extras: Optional[Mapping[str, pd.DataFrame]] = None,
) -> None:
    """Write each formatted table to its own sheet of a new workbook.

    ``extras`` are plain frames (e.g. the summaries behind the tables) appended
    as unstyled sheets after the tables.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)
    used: Set[str] = set()
    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        if not tables and not extras:
            pd.DataFrame().to_excel(writer, sheet_name="Summary", index=False)
            return
        for ft in tables:
            title = _sheet_title(ft.name, used)
            # Start with an empty frame so the sheet exists
            pd.DataFrame().to_excel(writer, sheet_name=title, index=False)
            write_formatted_table(writer.sheets[title], ft)
        for name, df in (extras or {}).items():
            df.to_excel(writer, sheet_name=_sheet_title(name, used), index=False)
