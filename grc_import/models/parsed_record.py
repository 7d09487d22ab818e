from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

"""ParsedRecord / ImportResult models for the GRC import pipeline.

A ParsedRecord is one data row after mapping, normalization and validation.
An ImportResult aggregates every ParsedRecord of one parse call; a new result
is produced by each call and never mutated afterwards.
"""

__all__ = [
    "DelimiterChoice",
    "HeaderInfo",
    "ParsedRecord",
    "ImportResult",
]


@dataclass(frozen=True)
class DelimiterChoice:
    """Resolved column delimiter and its display name."""
    delimiter: str
    name: str


@dataclass(frozen=True)
class HeaderInfo:
    """Phase 1 output used to populate a mapping UI."""
    headers: list[str]
    delimiter: str
    delimiter_name: str
    suggested_mapping: dict[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedRecord:
    """One validated data row.

    ``row_number`` is 1-based over non-blank data lines (header excluded).
    Validity is derived from ``errors`` so the two can never disagree.
    ``values`` and ``raw_values`` are read-only mappings (MappingProxyType
    when built by RowValidator).
    """
    row_number: int
    values: Mapping[str, Any]
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()  # 既定値置換などの通知 (有効性には影響しない)
    raw_values: Mapping[str, str] | None = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)


@dataclass(frozen=True)
class ImportResult:
    """Aggregate over all ParsedRecords of one file (or one backup section)."""
    entity: str
    records: tuple[ParsedRecord, ...]
    delimiter: DelimiterChoice | None = None
    columns: dict[int, str] = field(default_factory=dict)  # 列 index -> 正規フィールド
    headers: tuple[str, ...] = ()

    def header_mapping(self) -> dict[str, str | None]:
        """Resolved mapping as ``{header: field or None}`` (for the mapping store).

        A repeated header keeps the first field mapped to it, as auto_map does.
        """
        mapping: dict[str, str | None] = {}
        for i, h in enumerate(self.headers):
            if mapping.get(h) is None:
                mapping[h] = self.columns.get(i)
        return mapping

    @property
    def total_count(self) -> int:
        return len(self.records)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.records if r.is_valid)

    @property
    def invalid_count(self) -> int:
        return self.total_count - self.valid_count

    @property
    def valid_records(self) -> list[ParsedRecord]:
        return [r for r in self.records if r.is_valid]

    @property
    def invalid_records(self) -> list[ParsedRecord]:
        return [r for r in self.records if not r.is_valid]
