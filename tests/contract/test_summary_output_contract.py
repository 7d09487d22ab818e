from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from grc_import.models.processing_result import FileStat, RunResult
from grc_import.services.summary import render_summary_line

"""SUMMARY line format contract."""

SUMMARY_RE = re.compile(
    r"^SUMMARY files=(\d+)/(\d+) total=(\d+) valid=(\d+) invalid=(\d+) committed=(\d+) "
    r"elapsed_sec=(\d+(?:\.\d+)?)$"
)


def _line(seconds: float, *stats: FileStat) -> str:
    start = datetime(2024, 1, 1, tzinfo=UTC)
    return render_summary_line(
        RunResult(file_stats=stats, start_time=start, end_time=start + timedelta(seconds=seconds))
    )


def test_summary_matches_contract_regex():
    for seconds in (0, 0.0004, 1.5, 12):
        line = _line(seconds, FileStat("a.csv", "controls", "success", total_rows=1, valid_rows=1))
        assert SUMMARY_RE.match(line), line


def test_valid_plus_invalid_equals_total():
    line = _line(
        1,
        FileStat("a.csv", "controls", "partial", total_rows=4, valid_rows=1, invalid_rows=3),
        FileStat("b.csv", "controls", "success", total_rows=2, valid_rows=2),
    )
    m = SUMMARY_RE.match(line)
    ok, files, total, valid, invalid, committed, _ = m.groups()
    assert (ok, files) == ("2", "2")
    assert int(valid) + int(invalid) == int(total) == 6
    assert committed == "0"
