from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pandas as pd

from ..config import Config
from ..domain.errors import DictionaryError
from ..domain.schema_defs import FIELD_OR_AVERAGE
from ..utils.normalize import is_missing
from .aggregate.summary import (
    build_group_table,
    pivot_longer,
    summarize_by_project,
    summarize_by_var,
)
from .output.formatting import FormattedTable, TableStyle, format_table
from .output.headers import get_table_headers


@dataclass(frozen=True)
class ReportTables:
    project_summary: pd.DataFrame
    variable_summary: pd.DataFrame
    tables: List[FormattedTable]
    # (group, reason) for groups whose table could not be built
    skipped: List[Tuple[str, str]] = field(default_factory=list)


def measurement_groups(dictionary: pd.DataFrame) -> List[str]:
    groups = [g for g in pd.unique(dictionary["measurement_group"]) if not is_missing(g)]
    return [str(g) for g in groups]


class ReportService:
    """Aggregation and table formatting for validated data."""

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger

    def build(
        self,
        data: pd.DataFrame,
        dictionary: pd.DataFrame,
        producer_id: object,
        year: object,
        cfg: Config,
        group_by: Optional[str] = None,
    ) -> ReportTables:
        long = pivot_longer(data, dictionary)
        self.logger.info(
            f"Pivoted {len(data)} samples into {len(long)} measurement rows",
            extra={"measurements": int(long["measurement"].nunique())},
        )
        if group_by is not None and group_by not in long.columns:
            self.logger.warning(
                f"Grouping column '{group_by}' not found; averages are not split by it"
            )
        project = summarize_by_project(long, cfg.texture_column, cfg.texture_label)
        by_var = summarize_by_var(long, group_by)

        style = TableStyle(lighter_color=cfg.lighter_color, darker_color=cfg.darker_color)
        id_keys = [FIELD_OR_AVERAGE, cfg.texture_label]
        tables: List[FormattedTable] = []
        skipped: List[Tuple[str, str]] = []

        for group in measurement_groups(dictionary):
            try:
                header = get_table_headers(dictionary, group)
                texture_label: Optional[str] = cfg.texture_label
                if texture_label in {r.key for r in header}:
                    # The header mapper must not receive colliding keys
                    self.logger.warning(
                        f"Group '{group}' declares a '{texture_label}' measurement; "
                        "leaving out the texture ID column"
                    )
                    texture_label = None
                table = build_group_table(
                    long,
                    group,
                    producer_id,
                    year,
                    producer_column=cfg.producer_column,
                    year_column=cfg.year_column,
                    field_column=cfg.field_column,
                    id_column=cfg.id_column,
                    texture_column=cfg.texture_column,
                    texture_label=texture_label,
                    average_label=cfg.average_label,
                    grouping_var=group_by,
                )
                tables.append(
                    format_table(
                        table, header, cfg.language, name=group, style=style, id_keys=id_keys
                    )
                )
                self.logger.info(
                    f"Built '{group}' table ({len(table)} rows, {table.shape[1]} columns)"
                )
            except DictionaryError as e:
                self.logger.warning(f"Skipping group '{group}': {e}")
                skipped.append((group, str(e)))

        return ReportTables(
            project_summary=project, variable_summary=by_var, tables=tables, skipped=skipped
        )
