from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

"""Remembered header mappings.

A mapping confirmed once for a given header set is stored in a JSON file and
offered again the next time a file with the same headers (in any order) is
imported for the same entity.
"""

__all__ = [
    "DEFAULT_MAPPING_STORE",
    "mapping_key",
    "MappingStore",
]

logger = logging.getLogger(__name__)

DEFAULT_MAPPING_STORE = Path(".grc_import/mappings.json")


def mapping_key(entity: str, headers: Sequence[str]) -> str:
    joined = "|".join(sorted(headers))
    digest = hashlib.sha1(joined.encode("utf-8")).hexdigest()[:16]
    return f"{entity}:{digest}"


class MappingStore:
    """JSON file of ``{entity:digest -> {header -> field|null}}``."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_MAPPING_STORE

    def _read(self) -> dict[str, dict[str, str | None]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            # 壊れたファイルは無視して作り直す
            logger.warning(f"mapping store unreadable ({self.path}): {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, entity: str, headers: Sequence[str]) -> dict[str, str | None] | None:
        saved = self._read().get(mapping_key(entity, headers))
        if saved is None:
            return None
        # 現在のヘッダに存在しないキーは落とす
        return {h: saved.get(h) for h in headers}

    def save(self, entity: str, headers: Sequence[str], mapping: Mapping[str, str | None]) -> Path:
        data = self._read()
        data[mapping_key(entity, headers)] = {h: mapping.get(h) for h in headers}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        return self.path
