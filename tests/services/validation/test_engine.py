from __future__ import annotations

from typing import List

import pandas as pd

from soilreports.services.validation.engine import validate_dataset
from soilreports.services.validation.rules import ValidationRule, build_rule


def _rules() -> List[ValidationRule]:
    rows = [
        {"variable": "producer_id", "required": "TRUE", "data_type": "character"},
        {
            "variable": "year",
            "required": "TRUE",
            "data_type": "integer",
            "validation_rule": ">= 2000",
        },
        {
            "variable": "sample_id",
            "required": "TRUE",
            "data_type": "character",
            "validation_rule": "no_duplicates,not_empty",
        },
        {"variable": "latitude", "required": "FALSE", "data_type": "numeric"},
    ]
    return [build_rule({"sheet": "Data", **r}) for r in rows]


def _frame(**overrides: list) -> pd.DataFrame:
    base = {
        "producer_id": ["P1", "P1", "P2"],
        "year": [2023, 2023, 2023],
        "sample_id": ["S1", "S2", "S3"],
    }
    base.update(overrides)
    return pd.DataFrame(base)


def test_valid_frame_passes() -> None:
    report = validate_dataset(_frame(), _rules())
    assert report.ok
    assert report.errors == []


def test_duplicate_ids_yield_one_error_with_both_rows() -> None:
    report = validate_dataset(_frame(sample_id=["S1", "S1", "S3"]), _rules())
    errs = report.errors_for("sample_id")
    assert len(errs) == 1
    assert errs[0].rule == "no_duplicates"
    assert errs[0].rows == ("S1", "S1")
    assert "S1 (rows 1, 2)" in errs[0].message


def test_range_violation_names_expression() -> None:
    report = validate_dataset(_frame(year=[1999, 2023, 2023]), _rules())
    (err,) = report.errors
    assert err.column == "year"
    assert err.rule == ">= 2000"
    assert err.rows == ("S1",)
    assert "S1=1999" in err.message


def test_missing_required_column_is_reported() -> None:
    df = _frame().drop(columns=["producer_id"])
    report = validate_dataset(df, _rules())
    errs = report.errors_for("producer_id")
    assert len(errs) == 1
    assert errs[0].rule == "required"
    assert "missing from sheet 'Data'" in errs[0].message


def test_absent_optional_column_is_skipped() -> None:
    report = validate_dataset(_frame(), _rules())
    assert report.errors_for("latitude") == []


def test_type_and_presence_errors() -> None:
    df = _frame(year=["2023", "twenty", 2023.5], producer_id=["P1", None, "  "])
    report = validate_dataset(df, _rules())
    year = report.errors_for("year")
    assert [e.rule for e in year] == ["data_type"]
    assert year[0].rows == ("S2", "S3")
    producer = report.errors_for("producer_id")
    assert [e.rule for e in producer] == ["required"]
    assert producer[0].rows == ("S2", "S3")


def test_numeric_column_accepts_numeric_text() -> None:
    df = _frame(latitude=["46.7", 46.8, None])
    assert validate_dataset(df, _rules()).ok
    df_bad = _frame(latitude=["46.7", "north", None])
    (err,) = validate_dataset(df_bad, _rules()).errors
    assert err.column == "latitude"
    assert err.rule == "data_type"


def test_all_errors_collected_in_one_pass() -> None:
    df = _frame(year=[1999, 1990, 2023], sample_id=["S1", "S1", None])
    report = validate_dataset(df, _rules())
    rules = sorted(e.rule for e in report.errors)
    assert rules == [">= 2000", "no_duplicates", "required"]
    assert not report.ok


def test_input_frame_is_not_modified() -> None:
    df = _frame(year=["1999", "2023", "2023"])
    before = df.copy()
    validate_dataset(df, _rules())
    pd.testing.assert_frame_equal(df, before)


def test_uniqueness_over_composite_key() -> None:
    rule = build_rule(
        {
            "sheet": "Data",
            "variable": "field_id",
            "unique_by": "producer_id+field_id",
            "data_type": "character",
            "validation_rule": "no_duplicates",
        }
    )
    df = pd.DataFrame(
        {
            "sample_id": ["S1", "S2", "S3"],
            "producer_id": ["P1", "P2", "P1"],
            "field_id": ["F1", "F1", "F1"],
        }
    )
    (err,) = validate_dataset(df, [rule]).errors
    assert err.rows == ("S1", "S3")
    assert "P1 + F1 (rows 1, 3: S1, S3)" in err.message


def test_blank_ids_fall_back_to_row_numbers() -> None:
    df = _frame(sample_id=["S1", None, "S3"], year=[2023, 1999, 2023])
    report = validate_dataset(df, _rules())
    assert report.errors_for("sample_id")[0].rows == ("row 2",)
    (year,) = report.errors_for("year")
    assert year.rows == ("row 2",)
    assert "row 2=1999" in year.message


def test_repeated_runs_give_identical_reports() -> None:
    df = _frame(year=[1999, 2020, "x"], sample_id=["S1", "S1", None])
    first = validate_dataset(df, _rules())
    second = validate_dataset(df, _rules())
    assert first == second
    assert first.to_dict() == second.to_dict()
