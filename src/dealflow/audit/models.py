"""Audit trail models for tracking every state-changing deal event."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from dealflow.domain.models import utc_now

SYSTEM_ACTOR = "system"


class EventKind(StrEnum):
    """Closed set of events recorded in the audit trail."""

    PROPOSAL_SUBMITTED = "PROPOSAL_SUBMITTED"
    BRAND_VIEWED = "BRAND_VIEWED"
    BRAND_ACCEPTED = "BRAND_ACCEPTED"
    BRAND_DECLINED = "BRAND_DECLINED"
    BRAND_COUNTERED = "BRAND_COUNTERED"
    CONTRACT_GENERATED = "CONTRACT_GENERATED"
    CONTRACT_GENERATION_FAILED = "CONTRACT_GENERATION_FAILED"
    DELIVERY_DETAILS_SUBMITTED = "DELIVERY_DETAILS_SUBMITTED"
    OTP_SENT = "OTP_SENT"
    OTP_VERIFIED = "OTP_VERIFIED"
    SIGNED_AS_BRAND = "SIGNED_AS_BRAND"
    SIGNED_AS_CREATOR = "SIGNED_AS_CREATOR"
    SIGNED_CONTRACT_UPLOADED = "SIGNED_CONTRACT_UPLOADED"
    CONTRACT_EXECUTED = "CONTRACT_EXECUTED"
    REMINDER_SENT = "REMINDER_SENT"
    MESSAGE_SHARED = "MESSAGE_SHARED"
    SIDE_EFFECT_FAILED = "SIDE_EFFECT_FAILED"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    ``actor_id`` is a user id, a role label such as ``"brand"``, or
    ``"system"`` for backend-initiated events.
    """

    deal_id: str
    event: EventKind
    actor_id: str = SYSTEM_ACTOR
    metadata: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utc_now)
