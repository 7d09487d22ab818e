from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Run-level result models for the GRC import tool.

FileStat carries the per-file outcome of a preview/commit run; RunResult is
the aggregate rendered into the SUMMARY line.
"""

__all__ = [
    "FileStat",
    "RunResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class FileStat:
    """Per-file outcome of a preview or commit run."""
    file_name: str
    entity: str
    status: str  # success / partial / failed
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    committed_rows: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None  # ファイルレベルの失敗理由


@dataclass(frozen=True)
class RunResult:
    """Aggregate over every file of one CLI run."""
    file_stats: tuple[FileStat, ...]
    start_time: datetime
    end_time: datetime

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def failed_files(self) -> int:
        return sum(1 for s in self.file_stats if s.status == "failed")

    @property
    def total_rows(self) -> int:
        return sum(s.total_rows for s in self.file_stats)

    @property
    def valid_rows(self) -> int:
        return sum(s.valid_rows for s in self.file_stats)

    @property
    def invalid_rows(self) -> int:
        return sum(s.invalid_rows for s in self.file_stats)

    @property
    def committed_rows(self) -> int:
        return sum(s.committed_rows for s in self.file_stats)

    @property
    def fully_successful(self) -> bool:
        return all(s.status == "success" for s in self.file_stats)


class BatchStatsAccumulator:
    """Collects insert batch timings reported by the record store."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float]:
        """Return ``(total_batches, avg_batch_seconds)``."""
        if not self.batch_times:
            return (0, 0.0)
        return (len(self.batch_times), statistics.mean(self.batch_times))
