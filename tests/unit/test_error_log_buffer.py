from __future__ import annotations

import json
from pathlib import Path

from grc_import.logging.error_log import (
    COMMIT_FAILED,
    FILE_INVALID,
    ROW_INVALID,
    ErrorLogBuffer,
    ErrorRecord,
)
from grc_import.services.orchestrator import parse_content

KEYS = {"timestamp", "file", "entity", "row", "error_type", "message"}


def test_error_record_json_line():
    rec = ErrorRecord.create("controls.csv", "controls", 3, ROW_INVALID, "code is required")
    data = json.loads(rec.to_json_line())
    assert set(data) == KEYS
    assert data["row"] == 3
    assert data["timestamp"].endswith("Z")
    assert not rec.is_file_level


def test_file_level_record_uses_row_minus_one(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.add_file_error("empty.csv", "controls", "no data")
    path = buf.flush()
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["row"] == -1
    assert data["error_type"] == FILE_INVALID


def test_add_result_one_line_per_error(temp_workdir: Path, controls):
    result = parse_content("code;name;weight\nC-1;A;1\n;;9\n", controls)
    buf = ErrorLogBuffer()
    assert buf.add_result("c.csv", result) == 3
    path = buf.flush()
    assert path.parent == Path("logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["message"] for r in rows] == [
        "code is required",
        "name is required",
        "weight must be between 1 and 5",
    ]
    assert {r["row"] for r in rows} == {2}
    assert len(buf) == 0


def test_flush_appends_to_same_file(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.add_file_error("a.csv", "controls", "x")
    first = buf.flush()
    buf.add_file_error("b.csv", "controls", "y", COMMIT_FAILED)
    second = buf.flush()
    assert first == second
    assert len(first.read_text(encoding="utf-8").splitlines()) == 2


def test_flush_without_records_creates_nothing(temp_workdir: Path):
    buf = ErrorLogBuffer(logs_dir=temp_workdir / "other")
    assert buf.flush() is None
    assert not (temp_workdir / "other").exists()
