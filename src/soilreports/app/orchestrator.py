from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config import Config
from ..domain.errors import ConfigError, DictionaryError
from ..services.output.manifest_writer import write_manifest, write_validation_report
from ..services.output.table_writer import write_tables
from ..utils.normalize import matches_value
from .container import Container
from .run_manager import start_run


EXIT_OK = 0
EXIT_NOTHING_TO_REPORT = 1
EXIT_INVALID = 2
EXIT_FAILED = 3


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Orchestrator:
    container: Container
    cfg: Config
    logger: logging.Logger

    def run(
        self,
        input_path: Path,
        out_dir: Path,
        producer: str,
        year: str,
        group_by: Optional[str] = None,
    ) -> int:
        """
        Pipeline: read template -> clean + validate -> summarize -> write tables.xlsx

        Returns 0 on success, 1 when the producer/year selects nothing, 2 when
        validation failed and 3 on any other failure.
        """
        run_ctx = start_run(out_dir)
        cfg = self.cfg
        self.logger.info(
            f"Using {len(self.container.validate.registry)} validation rules",
            extra={"path": str(self.container.rules_path)},
        )

        try:
            # 1. Load workbook
            tpl = self.container.io.read_template(
                input_path, cfg.data_sheet, cfg.dictionary_sheet, cfg.id_column
            )

            # 2. Clean and validate; both sheets are reported together
            checked = self.container.validate.check(
                tpl.data,
                tpl.dictionary,
                data_sheet=cfg.data_sheet,
                dictionary_sheet=cfg.dictionary_sheet,
                id_column=cfg.id_column,
                excluded=cfg.excluded_columns,
                max_warnings=cfg.max_warnings,
            )
            reports = [checked.report, checked.dictionary_report]
            write_validation_report(run_ctx.run_dir, reports, self.logger)
            if not all(r.ok for r in reports):
                n = sum(len(r.errors) for r in reports)
                self.logger.error(
                    f"Run FAILED with {n} validation errors; fix the workbook and try again"
                )
                return EXIT_INVALID

            # 3. Selection must match at least one sample
            data = checked.data
            for col in (cfg.producer_column, cfg.year_column):
                if col not in data.columns:
                    self.logger.error(f"Column '{col}' is missing from sheet '{cfg.data_sheet}'")
                    return EXIT_NOTHING_TO_REPORT
            selected = matches_value(data[cfg.producer_column], producer) & matches_value(
                data[cfg.year_column], year
            )
            if not selected.any():
                self.logger.error(f"No samples found for producer '{producer}' in year {year}")
                return EXIT_NOTHING_TO_REPORT
            self.logger.info(
                f"Selected {int(selected.sum())} samples for producer '{producer}' ({year})"
            )

            # 4. Aggregate and format one table per measurement group
            result = self.container.report.build(
                data, checked.dictionary, producer, year, cfg, group_by=group_by
            )
            if not result.tables:
                self.logger.error("No tables could be built from the data dictionary")
                return EXIT_NOTHING_TO_REPORT

            # 5. Write tables workbook (timestamped name)
            ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            tables_path = run_ctx.run_dir / f"tables_{ts}.xlsx"
            write_tables(
                result.tables,
                tables_path,
                extras={
                    "Project Summary": result.project_summary,
                    "Averages": result.variable_summary,
                },
            )
            self.logger.info(
                f"Wrote {tables_path.name} ({len(result.tables)} tables)",
                extra={"skipped": [g for g, _ in result.skipped]},
            )

            # 6. Write manifest
            write_manifest(
                run_dir=run_ctx.run_dir,
                input_path=input_path,
                rules_path=self.container.rules_path,
                producer=producer,
                year=year,
                group_by=group_by,
                started_at=run_ctx.started_at,
                finished_at=_utc_now(),
                cfg=cfg,
                reports=reports,
                tables=[t.name for t in result.tables],
                logger=self.logger,
            )

            self.logger.info("Pipeline completed successfully")
            return EXIT_OK

        except (ConfigError, DictionaryError) as e:
            self.logger.error(f"Pipeline failed: {e}")
            return EXIT_FAILED
        except Exception as e:
            self.logger.error(f"Pipeline failed: {e}", exc_info=True)
            return EXIT_FAILED
