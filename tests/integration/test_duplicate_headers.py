from __future__ import annotations

from pathlib import Path

import pandas as pd

from soilreports.main import run_pipeline


RULES_CSV = Path(__file__).resolve().parents[2] / "configs" / "validation_rules.csv"


def test_duplicate_headers_fail_gracefully(tmp_path: Path) -> None:
    # Two 'texture' columns would make df[col] a frame instead of a series
    header = ["producer_id", "year", "sample_id", "texture", "texture", "soc"]
    row = ["P1", 2023, "S1", "Loam", "Clay", 2.0]
    wb = tmp_path / "dup_headers.xlsx"
    with pd.ExcelWriter(wb, engine="openpyxl") as xw:
        pd.DataFrame([header, row]).to_excel(xw, sheet_name="Data", index=False, header=False)
        pd.DataFrame(
            [("soc", "Biological", "SOC", "%")],
            columns=["column_name", "measurement_group", "abbr", "unit"],
        ).to_excel(xw, sheet_name="Data Dictionary", index=False)

    out = tmp_path / "runs"
    code = run_pipeline(wb, out, "P1", "2023", rules_path=RULES_CSV)
    assert code != 0
    # On failure, tables_*.xlsx should not be produced
    assert not list(out.glob("*/tables_*.xlsx"))
    (log,) = list(out.glob("*/run.log"))
    text = log.read_text(encoding="utf-8")
    assert "duplicate column headers: texture" in text
    assert "Traceback" not in text
