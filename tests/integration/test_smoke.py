from __future__ import annotations

from pathlib import Path

import pandas as pd
import yaml
from openpyxl import load_workbook

from soilreports.config import Config
from soilreports.main import run_pipeline


RULES_CSV = Path(__file__).resolve().parents[2] / "configs" / "validation_rules.csv"


def _data() -> pd.DataFrame:
    rows = [
        ("P1", 2023, "S1", "F1", "Loam", "corn", 2.0, "6.1", 40, 30, 30),
        ("P1", 2023, "S2", "F1", "Loam", "corn", 3.0, "abc", 42, 28, 30),
        ("P1", 2023, "S3", "F2", "Clay", "wheat", 1.5, "7.0", 20, 30, 50),
        ("P2", 2023, "S4", "G1", "Sand", "wheat", 4.5, "5.5", 80, 10, 10),
        ("P2", 2022, "S5", "G1", "Sand", "corn", 4.0, "5.8", 78, 12, 10),
    ]
    cols = [
        "producer_id",
        "year",
        "sample_id",
        "field_id",
        "texture",
        "crop",
        "soc",
        "ph",
        "sand",
        "silt",
        "clay",
    ]
    return pd.DataFrame(rows, columns=cols)


def _dictionary() -> pd.DataFrame:
    return pd.DataFrame(
        [
            ("soc", "Biological", "SOC", "%"),
            ("ph", "Chemical", "pH", ""),
            ("sand", "Physical", "Sand", "%"),
            ("silt", "Physical", "Silt", "%"),
            ("clay", "Physical", "Clay", "%"),
        ],
        columns=["column_name", "measurement_group", "abbr", "unit"],
    )


def write_template(data: pd.DataFrame, dictionary: pd.DataFrame, path: Path) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        data.to_excel(writer, sheet_name="Data", index=False)
        dictionary.to_excel(writer, sheet_name="Data Dictionary", index=False)


def _run_dir(out: Path) -> Path:
    (run_dir,) = [p for p in out.iterdir() if p.is_dir()]
    return run_dir


def test_pipeline_success(tmp_path: Path) -> None:
    workbook = tmp_path / "template.xlsx"
    write_template(_data(), _dictionary(), workbook)
    out = tmp_path / "runs"

    code = run_pipeline(
        workbook, out, "P1", "2023", Config(), group_by="crop", rules_path=RULES_CSV
    )
    assert code == 0

    run_dir = _run_dir(out)
    (tables,) = list(run_dir.glob("tables_*.xlsx"))
    wb = load_workbook(tables)
    assert wb.sheetnames == [
        "Biological",
        "Chemical",
        "Physical",
        "Project Summary",
        "Averages",
    ]

    ws = wb["Physical"]
    assert [c.value for c in ws[1]] == ["Field or Average", "Texture", "Sand", "Silt", "Clay"]
    assert "C2:E2" in {str(r) for r in ws.merged_cells.ranges}
    labels = [ws.cell(row=r, column=1).value for r in range(3, 8)]
    assert labels == ["F1", "F2", "corn Average", "wheat Average", "Project Average"]

    chem = wb["Chemical"]
    # 'abc' was coerced to missing, so F1's pH is S1's alone
    assert chem.cell(row=3, column=3).value == 6.1

    for name in ("run_manifest.yaml", "validation_report.yaml", "run.log", "logs.jsonl"):
        assert (run_dir / name).exists(), name
    # Rule loading happens before the run directory exists, so the count is logged again
    assert "Using 13 validation rules" in (run_dir / "run.log").read_text(encoding="utf-8")
    manifest = yaml.safe_load((run_dir / "run_manifest.yaml").read_text(encoding="utf-8"))
    assert manifest["outcome"]["errors"] == 0
    assert manifest["outcome"]["tables"] == ["Biological", "Chemical", "Physical"]
    report = yaml.safe_load((run_dir / "validation_report.yaml").read_text(encoding="utf-8"))
    coerced = [w for w in report["reports"][0]["warnings"] if w["kind"] == "coerced"]
    assert [w["original_value"] for w in coerced] == ["abc"]


def test_pipeline_stops_on_validation_errors(tmp_path: Path) -> None:
    data = _data()
    data.loc[1, "sample_id"] = "S1"
    data.loc[3, "year"] = 1999
    workbook = tmp_path / "template.xlsx"
    write_template(data, _dictionary(), workbook)
    out = tmp_path / "runs"

    code = run_pipeline(workbook, out, "P1", "2023", rules_path=RULES_CSV)
    assert code == 2

    run_dir = _run_dir(out)
    assert not list(run_dir.glob("tables_*.xlsx"))
    report = yaml.safe_load((run_dir / "validation_report.yaml").read_text(encoding="utf-8"))
    errors = report["reports"][0]["errors"]
    assert sorted(e["rule"] for e in errors) == [">= 2000", "no_duplicates"]
    dup = next(e for e in errors if e["rule"] == "no_duplicates")
    assert dup["rows"] == ["S1", "S1"]


def test_pipeline_missing_required_column(tmp_path: Path) -> None:
    workbook = tmp_path / "template.xlsx"
    write_template(_data().drop(columns=["producer_id"]), _dictionary(), workbook)

    code = run_pipeline(workbook, tmp_path / "runs", "P1", "2023", rules_path=RULES_CSV)
    assert code == 2


def test_pipeline_nothing_to_report(tmp_path: Path) -> None:
    workbook = tmp_path / "template.xlsx"
    write_template(_data(), _dictionary(), workbook)

    code = run_pipeline(workbook, tmp_path / "runs", "P9", "2023", rules_path=RULES_CSV)
    assert code == 1


def test_pipeline_unexpected_failure(tmp_path: Path) -> None:
    code = run_pipeline(
        tmp_path / "absent.xlsx", tmp_path / "runs", "P1", "2023", rules_path=RULES_CSV
    )
    assert code == 3


def test_pipeline_summary_sheets(tmp_path: Path) -> None:
    workbook = tmp_path / "template.xlsx"
    write_template(_data(), _dictionary(), workbook)
    out = tmp_path / "runs"

    assert run_pipeline(workbook, out, "P2", "2022", rules_path=RULES_CSV) == 0
    (tables,) = list(_run_dir(out).glob("tables_*.xlsx"))
    project = pd.read_excel(tables, sheet_name="Project Summary")
    assert project.columns.tolist() == ["measurement_group", "Texture"]
    averages = pd.read_excel(tables, sheet_name="Averages")
    soc = averages.loc[averages["measurement"] == "soc", "value"].iloc[0]
    assert soc == 3.0
