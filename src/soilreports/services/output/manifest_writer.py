from __future__ import annotations

import logging
import platform
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd
import yaml

from ...config import Config
from ...types import (
    Manifest,
    ManifestEnvironment,
    ManifestInputs,
    ManifestOutcome,
    ManifestParameters,
)
from ..validation.report import ValidationReport
from .utils import sha256_file


def write_manifest(
    *,
    run_dir: Path,
    input_path: Path,
    rules_path: Path,
    producer: str,
    year: str,
    group_by: Optional[str],
    started_at: str,
    finished_at: str,
    cfg: Config,
    reports: Sequence[ValidationReport],
    tables: List[str],
    logger: logging.Logger,
) -> Path:
    inputs: ManifestInputs = {
        "workbook": {"path": str(input_path), "sha256": sha256_file(input_path)},
        "rules": {"path": str(rules_path), "sha256": sha256_file(rules_path)},
    }

    params: ManifestParameters = {
        "producer": producer,
        "year": year,
        "group_by": group_by,
        "language": cfg.language,
        "data_sheet": cfg.data_sheet,
        "dictionary_sheet": cfg.dictionary_sheet,
    }

    env: ManifestEnvironment = {
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "pandas": pd.__version__,
    }

    outcome: ManifestOutcome = {
        "errors": sum(len(r.errors) for r in reports),
        "warnings": sum(len(r.warnings) for r in reports),
        "tables": tables,
    }

    manifest: Manifest = {
        "pipeline_version": cfg.pipeline_version,
        "started_at": started_at,
        "finished_at": finished_at,
        "inputs": inputs,
        "parameters": params,
        "environment": env,
        "outcome": outcome,
    }

    out_path = run_dir / "run_manifest.yaml"
    logger.info("Writing run_manifest.yaml", extra={"path": str(out_path)})
    with out_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(manifest, f, sort_keys=False, allow_unicode=True)
    return out_path


def write_validation_report(
    run_dir: Path, reports: Sequence[ValidationReport], logger: logging.Logger
) -> Path:
    out_path = run_dir / "validation_report.yaml"
    logger.info("Writing validation_report.yaml", extra={"path": str(out_path)})
    with out_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(
            {"reports": [r.to_dict() for r in reports]}, f, sort_keys=False, allow_unicode=True
        )
    return out_path
