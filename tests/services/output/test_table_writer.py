from __future__ import annotations

from pathlib import Path

import pandas as pd
from openpyxl import load_workbook

from soilreports.services.output.formatting import format_table
from soilreports.services.output.headers import HeaderRow
from soilreports.services.output.table_writer import write_tables


def _formatted(name: str = "Physical"):
    table = pd.DataFrame(
        {
            "Field or Average": ["F1", "F2", "Project Average"],
            "Texture": ["Loam", None, "Loam"],
            "Sand": [40.0, 60.0, 50.0],
            "Clay": [30.0, float("nan"), 25.0],
        }
    )
    header = [
        HeaderRow("Field or Average", "Field or Average", ""),
        HeaderRow("Sand", "Sand", "%"),
        HeaderRow("Clay", "Clay", "%"),
    ]
    return format_table(table, header, name=name)


def test_write_tables_layout(tmp_path: Path) -> None:
    out = tmp_path / "tables.xlsx"
    ft = _formatted()
    write_tables([ft], out)

    wb = load_workbook(out)
    assert wb.sheetnames == ["Physical"]
    ws = wb["Physical"]
    assert [ws.cell(row=1, column=j).value for j in range(1, 5)] == [
        "Field or Average",
        "Texture",
        "Sand",
        "Clay",
    ]
    assert ws.cell(row=2, column=3).value == "%"
    assert "C2:D2" in {str(r) for r in ws.merged_cells.ranges}

    # Body starts on row 3; F1's sand is below the baseline, F2's is above
    assert ws.cell(row=3, column=1).value == "F1"
    assert ws.cell(row=3, column=3).value == 40.0
    assert ws.cell(row=3, column=3).fill.fgColor.rgb == "FFF2F0E6"
    assert ws.cell(row=4, column=3).fill.fgColor.rgb == "FFCCC29C"
    assert ws.cell(row=4, column=4).value is None
    assert ws.cell(row=1, column=3).border.bottom.style == "thin"

    note = ws.cell(row=len(ft.table) + 4, column=1).value
    assert note == ft.footnote_text()


def test_sheet_titles_are_sanitized_and_unique(tmp_path: Path) -> None:
    out = tmp_path / "tables.xlsx"
    write_tables([_formatted("Soil: Physical/Texture"), _formatted("Soil: Physical/Texture")], out)
    names = load_workbook(out).sheetnames
    assert names == ["Soil_ Physical_Texture", "Soil_ Physical_Texture (2)"]
