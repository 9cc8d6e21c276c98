from __future__ import annotations

import json
import logging
from pathlib import Path

from soilreports.utils.logging_setup import ExtraAwareFormatter, JsonLineFormatter, setup_logging


def _record(**extra: object) -> logging.LogRecord:
    rec = logging.LogRecord(
        name="soilreports.main",
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg="Run FAILED with %d validation errors",
        args=(2,),
        exc_info=None,
    )
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_extra_aware_formatter_keeps_message_clean() -> None:
    fmt = ExtraAwareFormatter("%(levelname)s | %(name)s | %(message)s")
    out = fmt.format(_record(column="year"))
    # Extras are not appended to the human log
    assert out == "ERROR | soilreports.main | Run FAILED with 2 validation errors"


def test_json_line_formatter_includes_extras() -> None:
    payload = json.loads(JsonLineFormatter().format(_record(column="year", rows=[0, 1])))
    assert payload["level"] == "ERROR"
    assert payload["message"] == "Run FAILED with 2 validation errors"
    assert payload["column"] == "year"
    assert payload["rows"] == [0, 1]


def test_setup_logging_writes_both_files(tmp_path: Path) -> None:
    logs = setup_logging(tmp_path / "run")
    logging.getLogger("soilreports.test").info("hello", extra={"path": "x.xlsx"})
    for h in logging.getLogger().handlers:
        h.flush()
    assert "hello" in logs.human.read_text(encoding="utf-8")
    line = logs.jsonl.read_text(encoding="utf-8").strip().splitlines()[-1]
    assert json.loads(line)["path"] == "x.xlsx"
