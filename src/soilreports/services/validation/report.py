from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from ...domain.errors import CoercionWarning, ValidationIssue


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of validating one sheet.

    ``errors`` block progression to aggregation; ``warnings`` are informational
    (typically the cleaner's coercions) and must still be shown to the user.
    """

    sheet: str
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[CoercionWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def errors_for(self, column: str) -> List[ValidationIssue]:
        return [e for e in self.errors if e.column == column]

    def with_warnings(self, warnings: List[CoercionWarning]) -> "ValidationReport":
        return ValidationReport(
            sheet=self.sheet, errors=list(self.errors), warnings=list(self.warnings) + warnings
        )

    def summary(self) -> str:
        coerced = sum(1 for w in self.warnings if w.kind == "coerced")
        missing = len(self.warnings) - coerced
        status = "PASSED" if self.ok else "FAILED"
        return (
            f"Validation {status} for sheet '{self.sheet}': "
            f"{len(self.errors)} errors, {coerced} coerced values, {missing} missing values"
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "sheet": self.sheet,
            "ok": self.ok,
            "errors": [
                {"column": e.column, "rule": e.rule, "message": e.message, "rows": list(e.rows)}
                for e in self.errors
            ],
            "warnings": [
                {
                    "column": w.column,
                    "row_index": w.row_index,
                    "kind": w.kind,
                    "original_value": w.original_value,
                    "message": w.message,
                }
                for w in self.warnings
            ],
        }
