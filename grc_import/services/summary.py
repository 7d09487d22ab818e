from __future__ import annotations

import pandas as pd

from ..models.parsed_record import ImportResult
from ..models.processing_result import RunResult

"""SUMMARY line and preview table rendering.

SUMMARY line format (one line per run)::

    SUMMARY files={ok}/{total} total={rows} valid={valid} invalid={invalid} committed={n} elapsed_sec={s}
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
    "result_frame",
]

PREVIEW_STATUS_COLUMN = "_status"
PREVIEW_ISSUES_COLUMN = "_issues"


def format_elapsed(seconds: float) -> str:
    # 指数表記を避ける
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: RunResult) -> str:
    """Render the SUMMARY line for one run.

    ``files`` counts files that were not failed over all files given.

    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> render_summary_line(RunResult(file_stats=(), start_time=t, end_time=t))
    'SUMMARY files=0/0 total=0 valid=0 invalid=0 committed=0 elapsed_sec=0'
    """
    total_files = len(result.file_stats)
    ok_files = total_files - result.failed_files
    return (
        f"SUMMARY files={ok_files}/{total_files} "
        f"total={result.total_rows} "
        f"valid={result.valid_rows} "
        f"invalid={result.invalid_rows} "
        f"committed={result.committed_rows} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )


def result_frame(result: ImportResult, columns: list[str] | None = None) -> pd.DataFrame:
    """Preview table: one row per record, indexed by row number.

    ``columns`` limits the value columns (default: every mapped field).
    """
    if columns is None:
        columns = list(dict.fromkeys(result.columns.values()))
    data = []
    for rec in result.records:
        row = {c: rec.values.get(c) for c in columns}
        row[PREVIEW_STATUS_COLUMN] = "ok" if rec.is_valid else "invalid"
        row[PREVIEW_ISSUES_COLUMN] = "; ".join(rec.errors + rec.warnings)
        data.append(row)
    frame = pd.DataFrame(data, columns=[*columns, PREVIEW_STATUS_COLUMN, PREVIEW_ISSUES_COLUMN])
    frame.index = pd.Index([r.row_number for r in result.records], name="row")
    return frame
