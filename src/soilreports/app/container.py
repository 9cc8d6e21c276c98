from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..config import Config
from ..services.io_excel import IOService
from ..services.report_service import ReportService
from ..services.validate_service import ValidateService


@dataclass(frozen=True)
class Container:
    io: IOService
    validate: ValidateService
    report: ReportService
    rules_path: Path


def build_container(
    base_logger_name: str, cfg: Config, rules_path: Path | None = None
) -> Container:
    """Wire services once per process; rules are loaded here and never reloaded.

    Raises:
        ConfigError: if the rule table is missing or malformed.
    """
    base = logging.getLogger(base_logger_name)
    path = rules_path or Path(cfg.rules_path)
    io = IOService(base.getChild("io"))
    validate = ValidateService.from_rules_file(base.getChild("validate"), path)
    report = ReportService(base.getChild("report"))
    return Container(io=io, validate=validate, report=report, rules_path=path)
