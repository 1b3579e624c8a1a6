"""Record store interface consumed by every deal workflow component."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Protocol


class RecordKind(StrEnum):
    """Kinds of records kept in the record store."""

    DEAL = "deal"
    ACTION_TOKEN = "action_token"
    OTP_CHALLENGE = "otp_challenge"
    SIGNATURE = "signature"


class RecordStore(Protocol):
    """Keyed record store with conditional update.

    Records are plain JSON-compatible dicts.  ``update_if`` must be an
    atomic compare-and-swap: the changes land only if every field in
    *expected* still holds the given value.
    """

    def get(self, kind: RecordKind, record_id: str) -> dict[str, Any] | None: ...

    def find(
        self, kind: RecordKind, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]: ...

    def insert(
        self, kind: RecordKind, record_id: str, record: Mapping[str, Any]
    ) -> dict[str, Any]: ...

    def update_if(
        self,
        kind: RecordKind,
        record_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> dict[str, Any] | None: ...

    def delete(self, kind: RecordKind, record_id: str) -> bool: ...
