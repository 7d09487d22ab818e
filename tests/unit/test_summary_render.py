from __future__ import annotations

from datetime import UTC, datetime, timedelta

from grc_import.models.processing_result import FileStat, RunResult
from grc_import.services.orchestrator import parse_content
from grc_import.services.summary import format_elapsed, render_summary_line, result_frame


def _run(*stats: FileStat, seconds: float = 2.0) -> RunResult:
    start = datetime(2024, 1, 1, tzinfo=UTC)
    return RunResult(file_stats=stats, start_time=start, end_time=start + timedelta(seconds=seconds))


def test_render_summary_line():
    run = _run(
        FileStat("a.csv", "controls", "success", total_rows=2, valid_rows=2, committed_rows=2),
        FileStat("b.csv", "controls", "partial", total_rows=4, valid_rows=1, invalid_rows=3, committed_rows=1),
        FileStat("c.csv", "controls", "failed", error="empty"),
    )
    assert render_summary_line(run) == (
        "SUMMARY files=2/3 total=6 valid=3 invalid=3 committed=3 elapsed_sec=2"
    )
    assert not run.fully_successful


def test_format_elapsed():
    assert format_elapsed(0) == "0"
    assert format_elapsed(3.0) == "3"
    assert format_elapsed(1.23456) == "1.235"
    assert format_elapsed(0.000123) == "0.000123"


def test_result_frame(controls):
    result = parse_content("code;name;weight\nC-1;A;2\n;B;9\n", controls)
    frame = result_frame(result)
    assert list(frame.columns) == ["code", "name", "weight", "_status", "_issues"]
    assert list(frame.index) == [1, 2]
    assert frame.loc[1, "_status"] == "ok"
    assert frame.loc[2, "_status"] == "invalid"
    assert frame.loc[2, "_issues"] == "code is required; weight must be between 1 and 5"
