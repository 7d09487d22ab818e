from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..models.config_models import DelimiterPolicy
from ..models.field_spec import EntityProfile
from ..models.parsed_record import DelimiterChoice, ImportResult
from ..tabular.delimiter import delimiter_name, detect_delimiter, split_lines, strip_bom
from ..tabular.errors import EmptyFileError, UnsupportedFormatError
from ..tabular.reader import JSON_SUFFIXES, TEXT_SUFFIXES, cell_to_text, read_json, read_text
from ..tabular.tokenizer import tokenize_line
from .orchestrator import parse_rows

"""Backup import (assessments / risks / action plans).

Two layouts are accepted:

JSON export::

    {"metadata": {...}, "assessments": [{...}], "risks": [...], "action_plans": [...]}

Sectioned CSV::

    ## Assessments
    control_code,framework_code,maturity_level
    GV.OC-01,nist_csf,2
    ## Action Plans
    title,status
    ...

Every section is validated with the profile of the same name through
parse_rows, so backup rows get exactly the checks a single-entity import gets.
"""

__all__ = [
    "BACKUP_SECTIONS",
    "BackupImportResult",
    "section_key",
    "parse_backup_csv",
    "parse_backup_json",
    "parse_backup_file",
]

logger = logging.getLogger(__name__)

BACKUP_SECTIONS: tuple[str, ...] = ("assessments", "risks", "action_plans")


@dataclass(frozen=True)
class BackupImportResult:
    metadata: dict[str, Any]
    sections: dict[str, ImportResult] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        return sum(r.total_count for r in self.sections.values())

    @property
    def valid_count(self) -> int:
        return sum(r.valid_count for r in self.sections.values())

    @property
    def invalid_count(self) -> int:
        return sum(r.invalid_count for r in self.sections.values())


def section_key(title: str) -> str:
    """``"Action Plans"`` -> ``"action_plans"``."""
    return "_".join(title.strip().lower().split())


def _profile(profiles: Mapping[str, EntityProfile], section: str) -> EntityProfile:
    try:
        return profiles[section]
    except KeyError:
        raise UnsupportedFormatError(f"no profile for backup section '{section}'") from None


def _collect_sections(content: str) -> dict[str, list[str]]:
    sections: dict[str, list[str]] = {}
    current: str | None = None
    for line in split_lines(strip_bom(content)):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("## "):
            current = section_key(stripped[3:])
            if current not in BACKUP_SECTIONS:
                logger.warning(f"backup: unknown section '{stripped[3:].strip()}' ignored")
                current = None
                continue
            sections.setdefault(current, [])
            continue
        if current is None:
            # 最初の見出しより前の行は読み飛ばす
            continue
        sections[current].append(line)
    return sections


def parse_backup_csv(
    content: str,
    profiles: Mapping[str, EntityProfile],
    delimiter: str | None = None,
    existing_keys: Mapping[str, Iterable[str]] | None = None,
    policy: DelimiterPolicy | None = None,
) -> BackupImportResult:
    """Parse a ``## Section`` CSV backup.

    The delimiter is detected per section unless given. A section heading
    without a header line is an empty section.
    """
    existing_keys = existing_keys or {}
    raw_sections = _collect_sections(content)
    if not raw_sections:
        raise EmptyFileError("backup has no '## <section>' heading")

    results: dict[str, ImportResult] = {}
    for name, lines in raw_sections.items():
        profile = _profile(profiles, name)
        if not lines:
            results[name] = ImportResult(entity=profile.name, records=())
            continue
        if delimiter:
            choice = DelimiterChoice(delimiter, delimiter_name(delimiter))
        else:
            choice = detect_delimiter("\n".join(lines), policy)
        header = tokenize_line(lines[0], choice.delimiter)
        rows = [tokenize_line(ln, choice.delimiter) for ln in lines[1:]]
        results[name] = parse_rows(
            header, rows, profile, existing_keys=existing_keys.get(name), delimiter=choice
        )
    return BackupImportResult(metadata={}, sections=results)


def parse_backup_json(
    data: Any,
    profiles: Mapping[str, EntityProfile],
    existing_keys: Mapping[str, Iterable[str]] | None = None,
) -> BackupImportResult:
    """Validate an already-decoded JSON backup document."""
    if not isinstance(data, dict):
        raise UnsupportedFormatError("backup JSON must be an object")
    existing_keys = existing_keys or {}
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise UnsupportedFormatError("backup 'metadata' must be an object")

    results: dict[str, ImportResult] = {}
    for name in BACKUP_SECTIONS:
        items = data.get(name)
        if items is None:
            continue
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise UnsupportedFormatError(f"backup section '{name}' must be a list of objects")
        profile = _profile(profiles, name)
        if not items:
            results[name] = ImportResult(entity=profile.name, records=())
            continue
        header: list[str] = []
        for item in items:
            header.extend(k for k in item if k not in header)
        rows = [[cell_to_text(item.get(h)) for h in header] for item in items]
        results[name] = parse_rows(header, rows, profile, existing_keys=existing_keys.get(name))

    if not results:
        raise EmptyFileError(
            "backup JSON has none of the sections: " + ", ".join(BACKUP_SECTIONS)
        )
    return BackupImportResult(metadata=dict(metadata), sections=results)


def parse_backup_file(
    path: Path,
    profiles: Mapping[str, EntityProfile],
    delimiter: str | None = None,
    existing_keys: Mapping[str, Iterable[str]] | None = None,
    policy: DelimiterPolicy | None = None,
) -> BackupImportResult:
    suffix = path.suffix.lower()
    if suffix in JSON_SUFFIXES:
        return parse_backup_json(read_json(path), profiles, existing_keys)
    if suffix in TEXT_SUFFIXES:
        return parse_backup_csv(read_text(path), profiles, delimiter, existing_keys, policy)
    raise UnsupportedFormatError(f"unsupported backup file type: {path.name}")
