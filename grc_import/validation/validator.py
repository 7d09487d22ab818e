from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from ..models.field_spec import EntityProfile, SystemField
from ..models.parsed_record import ParsedRecord
from .rules import normalize_value

"""Row normalizer & validator.

One RowValidator lives for exactly one file (or one backup section): it keeps
the identifiers seen so far and the auto-code counter. Every check of a row
runs; a row can carry several errors at once.
"""

__all__ = [
    "RowValidator",
]

logger = logging.getLogger(__name__)


class RowValidator:
    """Turn mapped raw rows into ParsedRecords for one entity profile."""

    def __init__(self, profile: EntityProfile, existing_keys: Iterable[str] | None = None) -> None:
        self.profile = profile
        self.existing_keys = frozenset(existing_keys or ())
        self._seen: dict[str, set[str]] = {}
        self._next_code: dict[str, int] = {
            f.key: self._initial_counter(f) for f in profile.fields if f.auto_code is not None
        }

    def _initial_counter(self, spec: SystemField) -> int:
        assert spec.auto_code is not None
        pattern = re.compile(rf"{re.escape(spec.auto_code.prefix)}-(\d+)")
        counter = 1
        for key in self.existing_keys:
            m = pattern.search(key)
            if m:
                counter = max(counter, int(m.group(1)) + 1)
        return counter

    def _generate_code(self, spec: SystemField) -> str:
        assert spec.auto_code is not None
        seen = self._seen.get(spec.key, set())
        while True:
            n = self._next_code[spec.key]
            self._next_code[spec.key] = n + 1
            code = spec.auto_code.format(n)
            # 既存/ファイル内で使用済みの番号は飛ばす
            if code not in seen and code not in self.existing_keys:
                return code

    def _code(
        self, spec: SystemField, text: str, errors: list[str], warnings: list[str]
    ) -> str | None:
        if not text:
            if spec.auto_code is None:
                if spec.required:
                    errors.append(f"{spec.key} is required")
                return None
            text = self._generate_code(spec)
            warnings.append(f'{spec.key} generated as "{text}"')

        seen = self._seen.setdefault(spec.key, set())
        if text in seen:
            errors.append(f'duplicate {spec.key} "{text}" in file')
        else:
            seen.add(text)
        if spec.key == self.profile.key_field and text in self.existing_keys:
            errors.append(f'{spec.key} "{text}" already exists')
        return text

    def _conditional(self, values: Mapping[str, Any], errors: list[str]) -> None:
        for spec in self.profile.fields:
            cond = spec.required_when
            applies = cond is None or str(values.get(cond.field) or "") == cond.equals
            if not applies:
                continue
            value = values.get(spec.key)
            if cond is not None and value in (None, "", []):
                errors.append(f"{spec.key} is required when {cond.field} is {cond.equals}")
                continue
            if spec.min_items is not None and value and len(value) < spec.min_items:
                errors.append(f"{spec.key} needs at least {spec.min_items} items")

    def validate(self, raw: Mapping[str, str], row_number: int) -> ParsedRecord:
        """Validate one mapped row (canonical key -> raw string)."""
        errors: list[str] = []
        warnings: list[str] = []
        values: dict[str, Any] = {}
        for spec in self.profile.fields:
            text = (raw.get(spec.key) or "").strip()
            if spec.kind == "code":
                values[spec.key] = self._code(spec, text, errors, warnings)
                continue
            outcome = normalize_value(spec, text, row_number)
            values[spec.key] = outcome.value
            errors.extend(outcome.errors)
            warnings.extend(outcome.warnings)

        self._conditional(values, errors)
        for key, value in self.profile.constants.items():
            values.setdefault(key, value)

        if errors:
            logger.debug("row %d invalid: %s", row_number, "; ".join(errors))
        return ParsedRecord(
            row_number=row_number,
            values=MappingProxyType(values),
            errors=tuple(errors),
            warnings=tuple(warnings),
            raw_values=MappingProxyType(dict(raw)),
        )
