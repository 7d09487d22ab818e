from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from ..db.batch_insert import InsertResult
from ..models.field_spec import EntityProfile
from ..models.parsed_record import ImportResult, ParsedRecord

"""Commit phase: write the valid records of an ImportResult to a RecordStore.

Parsing never persists anything; this module is the only writer. Each call is
one transaction: either every valid record of the result is stored or none.
"""

__all__ = [
    "CommitError",
    "RecordStore",
    "InMemoryRecordStore",
    "existing_keys_for",
    "to_store_row",
    "commit_result",
]

logger = logging.getLogger(__name__)


class CommitError(Exception):
    pass


class RecordStore(Protocol):
    def existing_keys(self, table: str, column: str) -> set[str]: ...

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> InsertResult: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class InMemoryRecordStore:
    """Dict-of-lists store for mock mode and tests.

    Inserted rows stay pending until commit(); rollback() discards them.
    """

    def __init__(self, tables: Mapping[str, Sequence[Mapping[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self._pending: dict[str, list[dict[str, Any]]] = {}

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables.get(table, []))

    def existing_keys(self, table: str, column: str) -> set[str]:
        rows = self.tables.get(table, []) + self._pending.get(table, [])
        return {str(r[column]) for r in rows if r.get(column) is not None}

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> InsertResult:
        self._pending.setdefault(table, []).extend(dict(r) for r in records)
        return InsertResult(inserted_rows=len(records))

    def commit(self) -> None:
        for table, rows in self._pending.items():
            self.tables.setdefault(table, []).extend(rows)
        self._pending.clear()

    def rollback(self) -> None:
        self._pending.clear()


def existing_keys_for(profile: EntityProfile, store: RecordStore) -> set[str]:
    """Identifiers already stored for the profile's key field (empty without one)."""
    if profile.key_field is None:
        return set()
    column = profile.get_field(profile.key_field).column_name
    return store.existing_keys(profile.table, column)


def to_store_row(record: ParsedRecord, profile: EntityProfile) -> dict[str, Any]:
    """Map a record's canonical values to store columns, then add constants."""
    row = {f.column_name: record.values.get(f.key) for f in profile.fields}
    for key, value in profile.constants.items():
        row.setdefault(key, value)
    return row


def commit_result(result: ImportResult, profile: EntityProfile, store: RecordStore) -> InsertResult:
    """Insert every valid record of ``result`` into ``profile.table``.

    Invalid records are skipped (they are reported through the error log).

    Raises:
        CommitError: the store rejected the batch; nothing was kept.
    """
    if result.entity != profile.name:
        raise CommitError(f"result is for '{result.entity}', profile is '{profile.name}'")
    rows = [to_store_row(rec, profile) for rec in result.valid_records]
    if not rows:
        logger.info(f"{profile.name}: nothing to commit ({result.invalid_count} invalid)")
        return InsertResult(inserted_rows=0)
    try:
        inserted = store.insert_many(profile.table, rows)
        store.commit()
    except Exception as e:
        store.rollback()
        raise CommitError(f"{profile.table}: {e}") from e
    logger.info(
        f"{profile.name}: committed {inserted.inserted_rows} rows into {profile.table} "
        f"(skipped {result.invalid_count} invalid)"
    )
    return inserted
