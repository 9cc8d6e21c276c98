from __future__ import annotations

import math

import pandas as pd

from soilreports.services.validation.coerce import coerce_measurements
from soilreports.services.validation.report import ValidationReport


def _frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "sample_id": ["S1", "S2", "S3", "S4"],
            "soc": ["abc", "12.5", 3, None],
            "ph": [6.5, "1,250.5", " 7 ", "n/a"],
            "texture": ["Loam", "Clay", "12", None],
        }
    )


def test_non_numeric_becomes_missing_with_warning() -> None:
    result = coerce_measurements(_frame(), ["soc", "ph"])
    soc = result.df["soc"]
    assert soc.dtype == "float64"
    assert math.isnan(soc[0])
    assert soc[1] == 12.5
    assert soc[2] == 3.0

    coerced = [w for w in result.warnings if w.kind == "coerced"]
    assert len(coerced) == 1
    w = coerced[0]
    assert (w.column, w.row_index, w.original_value) == ("soc", 0, "abc")
    assert w.message == "Row 1: soc value 'abc' is not a number; set to missing"


def test_separators_whitespace_and_missing_tokens() -> None:
    result = coerce_measurements(_frame(), ["ph"])
    assert result.df["ph"].tolist()[:3] == [6.5, 1250.5, 7.0]
    assert math.isnan(result.df["ph"][3])
    missing = [w for w in result.warnings if w.kind == "missing"]
    assert [(w.column, w.row_index) for w in missing] == [("ph", 3)]


def test_excluded_and_absent_columns_untouched() -> None:
    df = _frame()
    result = coerce_measurements(df, ["texture", "soc", "clay"], excluded=["texture"])
    assert result.df["texture"].tolist() == df["texture"].tolist()
    assert "clay" not in result.df.columns
    assert all(w.column == "soc" for w in result.warnings)


def test_shape_preserved_and_input_unchanged() -> None:
    df = _frame()
    before = df.copy()
    result = coerce_measurements(df, ["soc", "ph"])
    assert result.df.shape == df.shape
    assert list(result.df.columns) == list(df.columns)
    pd.testing.assert_frame_equal(df, before)


def test_report_carries_warnings_and_summary() -> None:
    result = coerce_measurements(_frame(), ["soc", "ph"])
    report = ValidationReport(sheet="Data").with_warnings(result.warnings)
    assert report.ok
    assert report.summary() == (
        "Validation PASSED for sheet 'Data': 0 errors, 1 coerced values, 2 missing values"
    )
    d = report.to_dict()
    assert d["ok"] is True
    assert d["warnings"][0]["original_value"] == "abc"
