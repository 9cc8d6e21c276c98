from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .app.container import build_container
from .app.orchestrator import EXIT_FAILED, Orchestrator
from .config import Config, load_config
from .types import ConfigOverrides


logger = logging.getLogger(__name__)


def _make_orchestrator(cfg: Config, rules_path: Path | None = None) -> Orchestrator:
    container = build_container("soilreports", cfg, rules_path)
    return Orchestrator(container=container, cfg=cfg, logger=logging.getLogger("soilreports.main"))


def run_pipeline(
    input_path: Path,
    out_dir: Path,
    producer: str,
    year: str,
    cfg: Config | None = None,
    group_by: str | None = None,
    rules_path: Path | None = None,
) -> int:
    orch = _make_orchestrator(cfg or Config(), rules_path)
    return orch.run(input_path, out_dir, producer, year, group_by)


def main() -> int:
    ap = argparse.ArgumentParser(description="Soil health report tables")
    ap.add_argument("--input", required=True, type=Path, help="Path to the template workbook")
    ap.add_argument("--producer", required=True, help="Producer ID to report on")
    ap.add_argument("--year", required=True, help="Sampling year to report on")
    ap.add_argument(
        "--group-by",
        required=False,
        default=None,
        help="Optional Data column to add per-value averages for (e.g. crop)",
    )
    ap.add_argument(
        "--language",
        required=False,
        choices=["English", "Spanish"],
        help="Footnote language (default from config)",
    )
    ap.add_argument("--rules", required=False, type=Path, help="Validation rules (csv or yaml)")
    ap.add_argument("--config", required=False, type=Path, help="Optional YAML config file")
    ap.add_argument(
        "--out", required=False, type=Path, default=Path("runs"), help="Output base dir"
    )
    ap.add_argument(
        "--max-warnings",
        required=False,
        type=int,
        help="Max coercion warnings to list in the log (default from config)",
    )
    args = ap.parse_args()

    overrides: ConfigOverrides = {}
    # Optional overrides only when provided
    if args.language is not None:
        overrides["language"] = args.language
    if args.max_warnings is not None:
        overrides["max_warnings"] = int(args.max_warnings)
    if args.rules is not None:
        overrides["rules_path"] = str(args.rules)

    try:
        cfg = load_config(args.config, overrides=overrides)
        return run_pipeline(args.input, args.out, args.producer, args.year, cfg, args.group_by)
    except Exception as exc:  # pragma: no cover
        logging.basicConfig(level=logging.ERROR)
        logging.exception("Unhandled exception: %s", exc)
        return EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
