"""Best-effort audit trail writer.

Audit entries are a side channel for humans: a failure to write one is
logged and swallowed so it can never fail the operation that triggered it.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from typing import Any

import structlog

from dealflow.audit.models import SYSTEM_ACTOR, AuditEntry, EventKind
from dealflow.audit.store import insert_audit_entry, query_audit_trail

logger = structlog.get_logger()


class AuditLogger:
    """Append-only writer for :class:`AuditEntry` rows.

    Args:
        conn: An open SQLite connection to the audit database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def record(
        self,
        deal_id: str,
        event: EventKind,
        actor_id: str = SYSTEM_ACTOR,
        metadata: dict[str, Any] | None = None,
    ) -> int | None:
        """Append an audit entry, never raising.

        Args:
            deal_id: The deal the event belongs to.
            event: The kind of event.
            actor_id: Who caused the event (user id, ``"brand"``, or ``"system"``).
            metadata: Arbitrary structured context.

        Returns:
            The row ID of the inserted entry, or ``None`` if the write failed.
        """
        try:
            entry = AuditEntry(deal_id=deal_id, event=event, actor_id=actor_id, metadata=metadata)
            with self._lock:
                return insert_audit_entry(self._conn, entry)
        except Exception:
            logger.exception("Failed to write audit entry", deal_id=deal_id, audit_event=str(event))
            return None

    def trail(
        self, deal_id: str, event: EventKind | None = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Return the audit trail for *deal_id*, newest first."""
        with self._lock:
            return query_audit_trail(
                self._conn,
                deal_id=deal_id,
                event=event.value if event is not None else None,
                limit=limit,
            )

    def has_recent(
        self,
        deal_id: str,
        event: EventKind,
        since: datetime,
        metadata_match: dict[str, Any] | None = None,
    ) -> bool:
        """Return True if *event* was recorded for *deal_id* at or after *since*.

        Read failures count as "not recent" so callers fall back to writing.
        """
        try:
            with self._lock:
                rows = query_audit_trail(
                    self._conn,
                    deal_id=deal_id,
                    event=event.value,
                    from_date=since.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
                )
        except Exception:
            logger.warning("Audit trail lookup failed", deal_id=deal_id, exc_info=True)
            return False
        if metadata_match is None:
            return bool(rows)
        return any(
            all((row.get("metadata") or {}).get(k) == v for k, v in metadata_match.items())
            for row in rows
        )
