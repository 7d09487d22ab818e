from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime

from ..models.field_spec import EntityProfile
from ..tabular.delimiter import BOM
from ..tabular.tokenizer import format_line
from .backup import BACKUP_SECTIONS

"""Import templates.

Generated files parse back cleanly: the header row auto-maps to every field of
the profile and the example rows validate.
"""

__all__ = [
    "template_header",
    "generate_template",
    "generate_backup_json",
    "generate_backup_csv",
]


def template_header(profile: EntityProfile) -> list[str]:
    return list(profile.template_headers or profile.keys)


def generate_template(profile: EntityProfile, delimiter: str = ",", bom: bool = False) -> str:
    """CSV text with the header row and the profile's example rows."""
    lines = [format_line(template_header(profile), delimiter)]
    for example in profile.examples:
        lines.append(format_line((example.get(k, "") for k in profile.keys), delimiter))
    text = "\n".join(lines) + "\n"
    # Excel で UTF-8 として開かせる場合のみ BOM を付ける
    return BOM + text if bom else text


def _backup_sections(profiles: Mapping[str, EntityProfile]) -> dict[str, EntityProfile]:
    return {name: profiles[name] for name in BACKUP_SECTIONS if name in profiles}


def generate_backup_json(
    profiles: Mapping[str, EntityProfile],
    organization_name: str = "Example Org",
    exported_at: datetime | None = None,
) -> str:
    exported_at = exported_at or datetime.now(UTC)
    doc: dict[str, object] = {
        "metadata": {
            "organization_name": organization_name,
            "exported_at": exported_at.isoformat(),
            "version": "1.0",
        }
    }
    for name, profile in _backup_sections(profiles).items():
        doc[name] = [{k: ex.get(k, "") for k in profile.keys} for ex in profile.examples]
    return json.dumps(doc, ensure_ascii=False, indent=2) + "\n"


def generate_backup_csv(profiles: Mapping[str, EntityProfile], delimiter: str = ",") -> str:
    lines: list[str] = []
    for name, profile in _backup_sections(profiles).items():
        title = " ".join(part.capitalize() for part in name.split("_"))
        lines.append(f"## {title}")
        lines.append(format_line(profile.keys, delimiter))
        for example in profile.examples:
            lines.append(format_line((example.get(k, "") for k in profile.keys), delimiter))
    return "\n".join(lines) + "\n"
