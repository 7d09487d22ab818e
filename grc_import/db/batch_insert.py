from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import Json, execute_values

"""PostgreSQL batch insert.

execute_values によるバッチ INSERT。テーブル/列名は profile 由来の識別子のみ
受け付け、値はすべてパラメータとして渡す。

PostgresRecordStore is the RecordStore used by ``commit`` in live mode; one
instance wraps one connection, and commit/rollback draw the transaction
boundary per imported file.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "PostgresRecordStore",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int  # 行数
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def _identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise BatchInsertError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def _adapt(value: Any) -> Any:
    # options 列 (list[dict]) などは jsonb として渡す
    if isinstance(value, (list, dict)):
        return Json(value)
    return value


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool = False,
    page_size: int = 500,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name
    columns: column names, in the order of each row tuple
    rows: row tuples
    returning: append ``RETURNING *`` and fetch the inserted rows
    page_size: execute_values page_size
    metrics_callback: receives one BatchMetrics per call; not invoked when
        ``rows`` is empty (the function returns early).
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(_identifier(c) for c in columns)
    base_sql = f"INSERT INTO {_identifier(table)} ({cols_sql}) VALUES %s"
    if returning:
        base_sql += " RETURNING *"

    start_time = time.time()
    try:
        execute_values(cursor, base_sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    returned = None
    if returning:
        try:
            returned = cursor.fetchall()
        except Exception as e:
            raise BatchInsertError(f"failed fetching RETURNING rows: {e}") from e

    return InsertResult(inserted_rows=len(rows_list), returned_values=returned)


class PostgresRecordStore:
    """RecordStore backed by a psycopg2 connection."""

    def __init__(
        self,
        connection: Any,
        *,
        page_size: int = 500,
        returning: bool = False,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.connection = connection
        self.page_size = page_size
        self.returning = returning
        self.metrics_callback = metrics_callback

    def existing_keys(self, table: str, column: str) -> set[str]:
        col = _identifier(column)
        with self.connection.cursor() as cur:
            try:
                cur.execute(f"SELECT {col} FROM {_identifier(table)} WHERE {col} IS NOT NULL")
                return {str(row[0]) for row in cur.fetchall()}
            except Exception as e:
                raise BatchInsertError(f"failed reading {table}.{column}: {e}") from e

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> InsertResult:
        if not records:
            return InsertResult(inserted_rows=0, returned_values=[] if self.returning else None)
        # commit 側で全レコード同一の列構成になっている
        columns = list(records[0])
        rows = [tuple(_adapt(rec.get(c)) for c in columns) for rec in records]
        with self.connection.cursor() as cur:
            return batch_insert(
                cur,
                table,
                columns,
                rows,
                returning=self.returning,
                page_size=self.page_size,
                metrics_callback=self.metrics_callback,
            )

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()
