from .batch_insert import (
    BatchInsertError,
    BatchMetrics,
    InsertResult,
    PostgresRecordStore,
    batch_insert,
)

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "PostgresRecordStore",
    "batch_insert",
]
