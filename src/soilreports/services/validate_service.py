from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from ..domain.errors import CoercionWarning
from .validation.coerce import CleanResult, coerce_measurements
from .validation.engine import validate_dataset
from .validation.report import ValidationReport
from .validation.rules import RuleRegistry, load_rules


@dataclass(frozen=True)
class CheckedData:
    """Cleaned Data and Data Dictionary plus their combined report."""

    data: pd.DataFrame
    dictionary: pd.DataFrame
    report: ValidationReport
    dictionary_report: ValidationReport


class ValidateService:
    """Cleaning and rule validation for one uploaded workbook."""

    def __init__(self, logger: logging.Logger, registry: RuleRegistry) -> None:
        self.logger = logger
        self.registry = registry

    @classmethod
    def from_rules_file(cls, logger: logging.Logger, path: Path) -> "ValidateService":
        logger.info("Loading validation rules", extra={"path": str(path)})
        registry = load_rules(path)
        logger.info(
            f"Loaded {len(registry)} validation rules",
            extra={"sheets": registry.sheets()},
        )
        return cls(logger, registry)

    def clean(
        self, df: pd.DataFrame, measurement_columns: Sequence[str], excluded: Sequence[str]
    ) -> CleanResult:
        result = coerce_measurements(df, measurement_columns, excluded)
        coerced = [w for w in result.warnings if w.kind == "coerced"]
        if coerced:
            self.logger.warning(f"{len(coerced)} non-numeric measurement values set to missing")
        return result

    def validate(
        self,
        df: pd.DataFrame,
        sheet: str,
        id_column: str,
        warnings: Sequence[CoercionWarning] = (),
    ) -> ValidationReport:
        rules = self.registry.rules_for(sheet)
        report = validate_dataset(df, rules, sheet=sheet, id_column=id_column)
        report = report.with_warnings(list(warnings))
        self.logger.info(report.summary(), extra={"rules": len(rules)})
        return report

    def check(
        self,
        data: pd.DataFrame,
        dictionary: pd.DataFrame,
        *,
        data_sheet: str,
        dictionary_sheet: str,
        id_column: str,
        excluded: Sequence[str],
        max_warnings: int = 50,
    ) -> CheckedData:
        """Clean measurement columns, then validate Data and (if ruled) the dictionary."""
        measurements: List[str] = []
        if "column_name" in dictionary.columns:
            measurements = [c for c in dictionary["column_name"].tolist() if c in data.columns]
        cleaned = self.clean(data, measurements, excluded)
        report = self.validate(cleaned.df, data_sheet, id_column, cleaned.warnings)

        if dictionary_sheet in self.registry.sheets():
            dict_report = self.validate(dictionary, dictionary_sheet, "column_name")
        else:
            dict_report = ValidationReport(sheet=dictionary_sheet)

        self._log_issues(report, max_warnings)
        self._log_issues(dict_report, max_warnings)
        return CheckedData(
            data=cleaned.df, dictionary=dictionary, report=report, dictionary_report=dict_report
        )

    def _log_issues(self, report: ValidationReport, max_warnings: int) -> None:
        for e in report.errors:
            self.logger.error(
                f"Sheet '{report.sheet}': {e.message}",
                extra={"column": e.column, "rule": e.rule},
            )
        coerced: List[CoercionWarning] = [w for w in report.warnings if w.kind == "coerced"]
        for w in coerced[:max_warnings]:
            self.logger.warning(f"  {w.message}", extra={"column": w.column})
        if len(coerced) > max_warnings:
            self.logger.warning(f"  ... {len(coerced) - max_warnings} more coercion warnings")
