"""Tests for the best-effort AuditLogger."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta

from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import EventKind


class TestRecord:
    def test_records_and_returns_row_id(self, audit_logger: AuditLogger) -> None:
        row_id = audit_logger.record(
            "deal-1", EventKind.BRAND_ACCEPTED, actor_id="brand", metadata={"a": 1}
        )
        assert row_id == 1
        (entry,) = audit_logger.trail("deal-1")
        assert entry["event"] == "BRAND_ACCEPTED"
        assert entry["actor_id"] == "brand"
        assert entry["metadata"] == {"a": 1}

    def test_defaults_to_system_actor(self, audit_logger: AuditLogger) -> None:
        audit_logger.record("deal-1", EventKind.CONTRACT_EXECUTED)
        assert audit_logger.trail("deal-1")[0]["actor_id"] == "system"

    def test_write_failure_is_swallowed(self, tmp_path) -> None:
        conn = sqlite3.connect(str(tmp_path / "closed.db"))
        conn.close()
        assert AuditLogger(conn).record("deal-1", EventKind.BRAND_VIEWED) is None


class TestTrail:
    def test_filters_by_event(self, audit_logger: AuditLogger) -> None:
        audit_logger.record("deal-1", EventKind.BRAND_VIEWED)
        audit_logger.record("deal-1", EventKind.BRAND_ACCEPTED)
        audit_logger.record("deal-2", EventKind.BRAND_ACCEPTED)
        assert len(audit_logger.trail("deal-1")) == 2
        assert len(audit_logger.trail("deal-1", EventKind.BRAND_ACCEPTED)) == 1


class TestHasRecent:
    def test_matches_window_and_metadata(self, audit_logger: AuditLogger) -> None:
        audit_logger.record("deal-1", EventKind.BRAND_VIEWED, metadata={"token_ref": "abc"})
        since = datetime.now(tz=UTC) - timedelta(hours=1)

        assert audit_logger.has_recent("deal-1", EventKind.BRAND_VIEWED, since)
        viewed = EventKind.BRAND_VIEWED
        assert audit_logger.has_recent("deal-1", viewed, since, {"token_ref": "abc"})
        assert not audit_logger.has_recent("deal-1", viewed, since, {"token_ref": "xyz"})
        assert not audit_logger.has_recent("deal-2", EventKind.BRAND_VIEWED, since)

    def test_outside_window(self, audit_logger: AuditLogger) -> None:
        audit_logger.record("deal-1", EventKind.BRAND_VIEWED)
        future = datetime.now(tz=UTC) + timedelta(minutes=5)
        assert not audit_logger.has_recent("deal-1", EventKind.BRAND_VIEWED, future)

    def test_read_failure_counts_as_not_recent(self, tmp_path) -> None:
        conn = sqlite3.connect(str(tmp_path / "closed.db"))
        conn.close()
        since = datetime.now(tz=UTC)
        assert AuditLogger(conn).has_recent("deal-1", EventKind.BRAND_VIEWED, since) is False
