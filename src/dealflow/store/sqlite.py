"""SQLite-backed record store with WAL mode and compare-and-swap updates.

Every record kind shares one ``records`` table keyed by ``(kind, id)`` with
the record body serialized as JSON.  Uses parameterized queries exclusively
and commits synchronously after writes.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic_core import to_jsonable_python

from dealflow.domain.errors import ConflictError, NotFoundError
from dealflow.store.base import RecordKind

logger = structlog.get_logger()


def init_record_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the record database with WAL mode.

    The connection is shared across worker threads; :class:`SQLiteRecordStore`
    serializes access to it.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection with the ``records`` table created.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS records (
            kind TEXT NOT NULL,
            id TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            PRIMARY KEY (kind, id)
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_records_kind ON records (kind, created_at)")

    conn.commit()
    return conn


def _now() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _normalize(values: Mapping[str, Any]) -> dict[str, Any]:
    """Convert enums, Decimals, dates, and models to their JSON form."""
    return {key: to_jsonable_python(value) for key, value in values.items()}


class SQLiteRecordStore:
    """Record store over a single SQLite connection.

    A process-wide lock plus ``BEGIN IMMEDIATE`` makes ``update_if`` an
    atomic compare-and-swap even when several workers share the database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``records`` table (see ``init_record_db``).
        """
        self._conn = conn
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, kind: RecordKind, record_id: str) -> dict[str, Any] | None:
        """Return the record stored under *kind*/*record_id*, or ``None``."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM records WHERE kind = ? AND id = ?",
                (kind.value, record_id),
            ).fetchone()
        if row is None:
            return None
        return dict(json.loads(row[0]))

    def find(
        self, kind: RecordKind, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Return every record of *kind* whose fields equal *filters*.

        Args:
            kind: The record kind to scan.
            filters: Field/value pairs that must all match.  ``None`` matches
                     every record.

        Returns:
            Matching records in insertion order.
        """
        wanted = _normalize(filters or {})
        with self._lock:
            rows = self._conn.execute(
                "SELECT data FROM records WHERE kind = ? ORDER BY created_at, rowid",
                (kind.value,),
            ).fetchall()

        results: list[dict[str, Any]] = []
        for (data,) in rows:
            record = json.loads(data)
            if all(record.get(key) == value for key, value in wanted.items()):
                results.append(record)
        return results

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(
        self, kind: RecordKind, record_id: str, record: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Insert a new record.

        Args:
            kind: The record kind.
            record_id: Unique key within *kind*.
            record: The record body.

        Returns:
            The stored (JSON-normalized) record.

        Raises:
            ConflictError: If a record with the same key already exists.
        """
        body = _normalize(record)
        now = _now()
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT INTO records (kind, id, data, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (kind.value, record_id, json.dumps(body), now, now),
                )
                self._conn.commit()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ConflictError(f"{kind} {record_id} already exists") from exc
        return body

    def update_if(
        self,
        kind: RecordKind,
        record_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Apply *changes* only if every field in *expected* still matches.

        Args:
            kind: The record kind.
            record_id: The record key.
            expected: Field/value pairs that must hold at write time.
            changes: Field/value pairs to write.

        Returns:
            The updated record, or ``None`` if the expectation failed.

        Raises:
            NotFoundError: If no record exists under the key.
        """
        wanted = _normalize(expected)
        updates = _normalize(changes)
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._conn.execute(
                    "SELECT data FROM records WHERE kind = ? AND id = ?",
                    (kind.value, record_id),
                ).fetchone()
                if row is None:
                    self._conn.rollback()
                    raise NotFoundError(kind.value, record_id)

                record = json.loads(row[0])
                if any(record.get(key) != value for key, value in wanted.items()):
                    self._conn.rollback()
                    logger.debug(
                        "Conditional update skipped",
                        kind=kind.value,
                        record_id=record_id,
                        expected=sorted(wanted),
                    )
                    return None

                record.update(updates)
                self._conn.execute(
                    "UPDATE records SET data = ?, updated_at = ? WHERE kind = ? AND id = ?",
                    (json.dumps(record), _now(), kind.value, record_id),
                )
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
        return dict(record)

    def delete(self, kind: RecordKind, record_id: str) -> bool:
        """Delete a record.  Returns True if a row was removed."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM records WHERE kind = ? AND id = ?",
                (kind.value, record_id),
            )
            self._conn.commit()
        return cursor.rowcount > 0
