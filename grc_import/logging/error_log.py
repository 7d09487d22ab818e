from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.parsed_record import ImportResult

"""Buffered JSON Lines error log.

- fixed record schema (schemas/error_log_schema.json, no extra keys)
- one ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC) per run, created on first flush
- records are buffered and appended per file
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "ROW_INVALID",
    "FILE_INVALID",
    "COMMIT_FAILED",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

ROW_INVALID = "ROW_INVALID"
FILE_INVALID = "FILE_INVALID"
COMMIT_FAILED = "COMMIT_FAILED"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    シリアル実行前提のためスレッド安全性は不要。
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add_file_error(self, file: str, entity: str, message: str, error_type: str = FILE_INVALID) -> None:
        self.append(ErrorRecord.create(file, entity, FILE_LEVEL_ROW, error_type, message))

    def add_result(self, file: str, result: ImportResult) -> int:
        """Buffer one record per row error of ``result``; return how many were added."""
        added = 0
        for rec in result.invalid_records:
            for message in rec.errors:
                self.append(ErrorRecord.create(file, result.entity, rec.row_number, ROW_INVALID, message))
                added += 1
        return added

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
