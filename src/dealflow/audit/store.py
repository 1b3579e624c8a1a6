"""SQLite-backed audit trail store with WAL mode and indexed queries.

Provides functions to initialize the database, insert audit entries, and
query the audit trail with flexible filtering. Uses parameterized queries
exclusively (never string concatenation) to prevent SQL injection.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from pydantic_core import to_jsonable_python

from dealflow.audit.models import AuditEntry


def init_audit_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the audit database with WAL mode and indexes.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            deal_id TEXT NOT NULL,
            actor_id TEXT NOT NULL,
            event TEXT NOT NULL,
            metadata TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_deal ON audit_log (deal_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)")

    conn.commit()
    return conn


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry into the database.

    Serializes metadata to a JSON string if present.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(to_jsonable_python(entry.metadata))

    timestamp = entry.timestamp.strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    cursor = conn.execute(
        """
        INSERT INTO audit_log (timestamp, deal_id, actor_id, event, metadata)
        VALUES (?, ?, ?, ?, ?)
        """,
        (timestamp, entry.deal_id, entry.actor_id, entry.event.value, metadata_json),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    deal_id: str | None = None,
    actor_id: str | None = None,
    event: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional.  Results are ordered newest first.

    Args:
        conn: An open database connection.
        deal_id: Filter by deal ID (exact match).
        actor_id: Filter by actor (exact match).
        event: Filter by event kind (exact match).
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date.
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry, newest first.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    if deal_id is not None:
        conditions.append("deal_id = ?")
        params.append(deal_id)

    if actor_id is not None:
        conditions.append("actor_id = ?")
        params.append(actor_id)

    if event is not None:
        conditions.append("event = ?")
        params.append(event)

    if from_date is not None:
        conditions.append("timestamp >= ?")
        params.append(from_date)

    if to_date is not None:
        conditions.append("timestamp <= ?")
        params.append(to_date)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    cursor = conn.execute(query, params)
    columns = [col[0] for col in cursor.description]

    results: list[dict[str, Any]] = []
    for row in cursor.fetchall():
        row_dict = dict(zip(columns, row, strict=True))
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results


def close_audit_db(conn: sqlite3.Connection) -> None:
    """Close the audit database connection.

    Args:
        conn: The database connection to close.
    """
    conn.close()
