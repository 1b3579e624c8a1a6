"""Tests for the audit trail query CLI."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from dealflow.audit.cli import build_parser, format_json, format_table, main, parse_last_duration
from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import EventKind
from dealflow.audit.store import close_audit_db, init_audit_db


class TestBuildParser:
    def test_accepts_all_arguments(self) -> None:
        args = build_parser().parse_args([
            "--deal", "deal-1",
            "--actor", "brand",
            "--from-date", "2026-01-01",
            "--to-date", "2026-02-01",
            "--event", "BRAND_ACCEPTED",
            "--last", "7d",
            "--format", "json",
            "--limit", "100",
            "--db", "/tmp/test.db",
        ])
        assert args.deal == "deal-1"
        assert args.actor == "brand"
        assert args.event == "BRAND_ACCEPTED"
        assert args.output_format == "json"
        assert args.limit == 100

    def test_defaults(self) -> None:
        args = build_parser().parse_args([])
        assert args.deal is None
        assert args.output_format == "table"
        assert args.limit == 50

    def test_rejects_unknown_event(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--event", "EMAIL_SENT"])


class TestParseLastDuration:
    NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        ("last", "expected"),
        [("7d", "2026-03-03T12:00:00Z"), ("24h", "2026-03-09T12:00:00Z")],
    )
    def test_converts(self, last: str, expected: str) -> None:
        assert parse_last_duration(last, now=self.NOW) == expected

    def test_defaults_to_now(self) -> None:
        parsed = datetime.strptime(parse_last_duration("1d"), "%Y-%m-%dT%H:%M:%SZ")
        result = parsed.replace(tzinfo=UTC)
        assert abs((datetime.now(tz=UTC) - timedelta(days=1) - result).total_seconds()) < 2

    @pytest.mark.parametrize("last", ["", "d", "7w", "xd"])
    def test_rejects(self, last: str) -> None:
        with pytest.raises(ValueError, match="Unrecognized duration"):
            parse_last_duration(last)


class TestFormatters:
    ROWS = [
        {
            "id": 1,
            "timestamp": "2026-03-02T09:30:00.000000Z",
            "deal_id": "deal-1",
            "actor_id": "brand",
            "event": "BRAND_ACCEPTED",
            "metadata": {"previous_status": "pending"},
        }
    ]

    def test_table(self) -> None:
        table = format_table(self.ROWS)
        header, rule, row = table.splitlines()
        assert header.startswith("Timestamp")
        assert set(rule) == {"-"}
        assert "BRAND_ACCEPTED" in row
        assert "previous_status" in row

    def test_empty_table(self) -> None:
        assert format_table([]) == "No results found."

    def test_json(self) -> None:
        assert json.loads(format_json(self.ROWS)) == self.ROWS


class TestMain:
    def test_prints_json(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        db = tmp_path / "audit.db"
        conn = init_audit_db(db)
        AuditLogger(conn).record("deal-1", EventKind.BRAND_COUNTERED, actor_id="brand")
        AuditLogger(conn).record("deal-2", EventKind.BRAND_DECLINED, actor_id="brand")
        close_audit_db(conn)

        main(["--db", str(db), "--deal", "deal-1", "--format", "json"])

        rows = json.loads(capsys.readouterr().out)
        assert [r["event"] for r in rows] == ["BRAND_COUNTERED"]

    def test_empty_database(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--db", str(tmp_path / "nested" / "audit.db")])
        assert capsys.readouterr().out.strip() == "No results found."
