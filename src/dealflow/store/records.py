"""Typed helpers for reading and conditionally updating deal records."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from dealflow.domain.errors import NotFoundError
from dealflow.domain.models import Deal, Signature
from dealflow.domain.types import SignerRole
from dealflow.store.base import RecordKind, RecordStore


def load_deal(store: RecordStore, deal_id: str) -> Deal:
    """Return the deal stored under *deal_id*.

    Raises:
        NotFoundError: If no such deal exists.
    """
    data = store.get(RecordKind.DEAL, deal_id)
    if data is None:
        raise NotFoundError("deal", deal_id)
    return Deal.model_validate(data)


def save_new_deal(store: RecordStore, deal: Deal) -> Deal:
    """Insert a freshly created deal."""
    store.insert(RecordKind.DEAL, deal.id, deal.model_dump(mode="json"))
    return deal


def update_deal(
    store: RecordStore,
    deal_id: str,
    expected: Mapping[str, Any],
    changes: Mapping[str, Any],
) -> Deal | None:
    """Compare-and-swap on a deal; returns the new deal or ``None`` if *expected* failed."""
    data = store.update_if(RecordKind.DEAL, deal_id, expected, changes)
    return Deal.model_validate(data) if data is not None else None


def load_signature(store: RecordStore, deal_id: str, role: SignerRole) -> Signature | None:
    """Return the signature for *role* on *deal_id*, or ``None``."""
    data = store.get(RecordKind.SIGNATURE, Signature.record_id(deal_id, role))
    return Signature.model_validate(data) if data is not None else None
