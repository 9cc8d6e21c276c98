from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..utils.logging_setup import LogFiles, setup_logging


@dataclass(frozen=True)
class RunContext:
    run_dir: Path
    logger: logging.Logger
    logs: LogFiles
    started_at: str


def start_run(out_dir: Path, base_logger_name: str = "soilreports") -> RunContext:
    now = datetime.now(timezone.utc)
    run_dir = out_dir / now.strftime("%Y%m%dT%H%M%S%fZ")
    logs = setup_logging(run_dir)
    logger = logging.getLogger(base_logger_name)
    logger.info("Run started", extra={"run_dir": str(run_dir)})
    return RunContext(
        run_dir=run_dir,
        logger=logger,
        logs=logs,
        started_at=now.strftime("%Y-%m-%dT%H:%M:%SZ"),
    )
