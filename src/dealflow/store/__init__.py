"""Record store interface and SQLite implementation."""

from dealflow.store.base import RecordKind, RecordStore
from dealflow.store.sqlite import SQLiteRecordStore, init_record_db

__all__ = [
    "RecordKind",
    "RecordStore",
    "SQLiteRecordStore",
    "init_record_db",
]
