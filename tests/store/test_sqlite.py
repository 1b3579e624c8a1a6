"""Tests for the SQLite record store and its compare-and-swap update."""

from __future__ import annotations

import threading
from decimal import Decimal
from pathlib import Path

import pytest

from dealflow.domain.errors import ConflictError, NotFoundError
from dealflow.domain.types import BrandResponseStatus
from dealflow.store.base import RecordKind
from dealflow.store.records import load_deal, update_deal
from dealflow.store.sqlite import SQLiteRecordStore, init_record_db


class TestInitRecordDb:
    def test_wal_mode_enabled(self, tmp_path: Path) -> None:
        conn = init_record_db(tmp_path / "r.db")
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        conn.close()

    def test_idempotent(self, tmp_path: Path) -> None:
        init_record_db(tmp_path / "r.db").close()
        conn = init_record_db(tmp_path / "r.db")
        assert conn.execute("SELECT COUNT(*) FROM records").fetchone()[0] == 0
        conn.close()


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestReadWrite:
    def test_insert_and_get(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "d1", {"id": "d1", "budget": Decimal("10.50")})
        assert store.get(RecordKind.DEAL, "d1") == {"id": "d1", "budget": "10.50"}

    def test_get_missing_returns_none(self, store: SQLiteRecordStore) -> None:
        assert store.get(RecordKind.DEAL, "nope") is None

    def test_kinds_are_separate_namespaces(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "x", {"v": 1})
        store.insert(RecordKind.SIGNATURE, "x", {"v": 2})
        assert store.get(RecordKind.DEAL, "x") == {"v": 1}
        assert store.get(RecordKind.SIGNATURE, "x") == {"v": 2}

    def test_duplicate_insert_conflicts(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.SIGNATURE, "d1:brand", {"role": "brand"})
        with pytest.raises(ConflictError):
            store.insert(RecordKind.SIGNATURE, "d1:brand", {"role": "brand"})

    def test_find_filters_by_fields(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.ACTION_TOKEN, "a", {"deal_id": "d1", "action": "accept"})
        store.insert(RecordKind.ACTION_TOKEN, "b", {"deal_id": "d1", "action": "decline"})
        store.insert(RecordKind.ACTION_TOKEN, "c", {"deal_id": "d2", "action": "accept"})
        found = store.find(RecordKind.ACTION_TOKEN, {"deal_id": "d1"})
        assert [r["action"] for r in found] == ["accept", "decline"]
        assert len(store.find(RecordKind.ACTION_TOKEN)) == 3

    def test_delete(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "d1", {})
        assert store.delete(RecordKind.DEAL, "d1") is True
        assert store.delete(RecordKind.DEAL, "d1") is False


# ---------------------------------------------------------------------------
# Compare-and-swap
# ---------------------------------------------------------------------------


class TestUpdateIf:
    def test_applies_when_expectation_holds(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "d1", {"state": "pending", "n": 1})
        updated = store.update_if(
            RecordKind.DEAL, "d1", {"state": "pending"}, {"state": "declined"}
        )
        assert updated == {"state": "declined", "n": 1}
        assert store.get(RecordKind.DEAL, "d1")["state"] == "declined"

    def test_skips_when_expectation_fails(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "d1", {"state": "declined"})
        lost = store.update_if(RecordKind.DEAL, "d1", {"state": "pending"}, {"state": "countered"})
        assert lost is None
        assert store.get(RecordKind.DEAL, "d1")["state"] == "declined"

    def test_none_expectation_matches_missing_field(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "d1", {})
        assert store.update_if(
            RecordKind.DEAL, "d1", {"contract_file_url": None}, {"contract_file_url": "u"}
        )

    def test_missing_record_raises(self, store: SQLiteRecordStore) -> None:
        with pytest.raises(NotFoundError):
            store.update_if(RecordKind.DEAL, "ghost", {}, {"x": 1})

    def test_enum_values_are_normalized(self, store: SQLiteRecordStore, make_deal) -> None:
        deal = make_deal()
        updated = update_deal(
            store,
            deal.id,
            {"brand_response_status": BrandResponseStatus.PENDING},
            {"brand_response_status": BrandResponseStatus.DECLINED},
        )
        assert updated is not None
        assert load_deal(store, deal.id).brand_response_status is BrandResponseStatus.DECLINED

    def test_concurrent_swaps_have_one_winner(self, store: SQLiteRecordStore) -> None:
        store.insert(RecordKind.DEAL, "d1", {"state": "pending"})
        results: list[object] = []
        barrier = threading.Barrier(8)

        def attempt(i: int) -> None:
            barrier.wait()
            result = store.update_if(
                RecordKind.DEAL, "d1", {"state": "pending"}, {"state": f"won-{i}"}
            )
            results.append(result)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert store.get(RecordKind.DEAL, "d1") == winners[0]


class TestLoadDeal:
    def test_unknown_deal_raises(self, store: SQLiteRecordStore) -> None:
        with pytest.raises(NotFoundError, match="deal not found"):
            load_deal(store, "missing")
