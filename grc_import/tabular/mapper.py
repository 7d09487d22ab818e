from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from ..models.field_spec import EntityProfile
from .errors import MappingError, MissingRequiredFieldsError

"""Header -> canonical field mapping.

Auto-mapping walks the headers left to right and, for each one, the profile
fields in declaration order; the first field whose (normalized) synonym list
contains the (normalized) header claims it. A claimed field is never offered
to a later header.

``fuzzy`` matching additionally accepts containment in either direction (3+
characters) per field, after the exact comparison of that field.
"""

__all__ = [
    "MATCH_MODES",
    "normalize_header",
    "auto_map",
    "resolve_columns",
    "check_required",
]

logger = logging.getLogger(__name__)

MATCH_MODES = ("exact", "fuzzy")

_STRIP = re.compile(r"[_\-\s]+")
_MIN_FUZZY_LEN = 3


def normalize_header(text: str) -> str:
    """Lower-case and drop underscores, hyphens and whitespace."""
    return _STRIP.sub("", text.strip().lower())


def _field_matches(normalized: str, aliases: list[str], match: str) -> bool:
    if normalized in aliases:
        return True
    if match != "fuzzy":
        return False
    return any(
        (len(a) >= _MIN_FUZZY_LEN and a in normalized)
        or (len(normalized) >= _MIN_FUZZY_LEN and normalized in a)
        for a in aliases
    )


def _auto_assign(headers: Sequence[str], profile: EntityProfile, match: str) -> dict[int, str]:
    if match not in MATCH_MODES:
        raise ValueError(f"unknown match mode: {match}")
    table = {
        f.key: [normalize_header(a) for a in (f.synonyms or (f.key,))] for f in profile.fields
    }
    used: set[str] = set()
    columns: dict[int, str] = {}
    for idx, header in enumerate(headers):
        normalized = normalize_header(header)
        if not normalized:
            continue
        for key, aliases in table.items():
            if key in used:
                continue
            if _field_matches(normalized, aliases, match):
                columns[idx] = key
                used.add(key)
                break
    return columns


def auto_map(
    headers: Sequence[str], profile: EntityProfile, match: str = "exact"
) -> dict[str, str | None]:
    """Suggest a header -> field mapping from the profile's synonym table.

    Unmatched headers map to ``None``. When a header text repeats, the first
    occurrence's suggestion is kept.
    """
    columns = _auto_assign(headers, profile, match)
    mapping: dict[str, str | None] = {}
    for idx, header in enumerate(headers):
        if header in mapping and mapping[header] is not None:
            continue
        mapping[header] = columns.get(idx)
    return mapping


def _explicit_assign(
    headers: Sequence[str], profile: EntityProfile, mapping: Mapping[str, str | None]
) -> dict[int, str]:
    unknown = sorted({v for v in mapping.values() if v and not profile.has_field(v)})
    if unknown:
        raise MappingError(
            f"mapping targets unknown fields for '{profile.name}': {', '.join(unknown)}"
        )
    columns: dict[int, str] = {}
    claimed: dict[str, str] = {}
    for idx, header in enumerate(headers):
        key = mapping.get(header)
        if not key:
            continue
        if key in claimed:
            if claimed[key] == header:
                # 同名ヘッダの繰り返しは最初の列のみ採用
                continue
            raise MappingError(
                f'field "{key}" mapped from both "{claimed[key]}" and "{header}"'
            )
        claimed[key] = header
        columns[idx] = key
    return columns


def check_required(columns: Mapping[int, str], profile: EntityProfile) -> None:
    """Raise MissingRequiredFieldsError if a required field has no column."""
    mapped = set(columns.values())
    missing = [k for k in profile.required_keys if k not in mapped]
    if missing:
        raise MissingRequiredFieldsError(missing)


def resolve_columns(
    headers: Sequence[str],
    profile: EntityProfile,
    mapping: Mapping[str, str | None] | None = None,
    match: str = "exact",
) -> dict[int, str]:
    """Resolve column index -> canonical field, then apply the required-field gate.

    With ``mapping`` the caller's header associations are used as-is (a header
    text that repeats maps only its first column); without it the synonym
    table is consulted.
    """
    if mapping is not None:
        columns = _explicit_assign(headers, profile, mapping)
    else:
        columns = _auto_assign(headers, profile, match)
    unmapped = [h for i, h in enumerate(headers) if i not in columns]
    if unmapped:
        logger.debug("unmapped columns for %s: %s", profile.name, unmapped)
    check_required(columns, profile)
    return columns
