"""Pydantic v2 models for deals, action tokens, OTP challenges, and signatures."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dealflow.domain.types import (
    BrandResponseStatus,
    CollabType,
    DealStatus,
    ExecutionStatus,
    ShippingStatus,
    SignerRole,
    TokenAction,
    ViewerRole,
)


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


def _reject_float(v: object) -> object:
    if isinstance(v, float):
        raise ValueError("Use Decimal or string, not float, for monetary values")
    return v


class CreatorRef(BaseModel):
    """The creator side of a deal, denormalized from their profile."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    benchmark_rate: Decimal | None = None

    @field_validator("benchmark_rate", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)


class UsageRights(BaseModel):
    """How the brand may use the delivered content."""

    model_config = ConfigDict(frozen=True)

    usage_type: str = "Non-exclusive"
    platforms: list[str] = Field(default_factory=lambda: ["All platforms"])
    duration: str = "6 months"
    paid_ads: bool = False
    whitelisting: bool = False


class Exclusivity(BaseModel):
    """Optional category exclusivity clause."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    category: str | None = None
    duration: str | None = None


class ContractPreferences(BaseModel):
    """Per-deal contract terms, defaulting to the standard creator agreement."""

    model_config = ConfigDict(frozen=True)

    payment_method: str = "Bank Transfer"
    payment_timeline: str = "Within 7 days of content delivery"
    usage: UsageRights = Field(default_factory=UsageRights)
    exclusivity: Exclusivity = Field(default_factory=Exclusivity)
    termination_notice_days: int = 7
    jurisdiction_city: str = "Mumbai"


class CounterOffer(BaseModel):
    """Revised terms proposed by the brand."""

    model_config = ConfigDict(frozen=True)

    budget: Decimal
    deliverables: list[str]
    timeline: date
    notes: str | None = None

    @field_validator("budget", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)


class DeliveryDetails(BaseModel):
    """Where the brand should ship product for a barter deal."""

    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    address: str
    notes: str | None = None


class Deal(BaseModel):
    """A single brand-creator collaboration and its lifecycle state.

    The three status fields are independent axes; see
    :mod:`dealflow.state_machine.transitions` for each axis's table.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    creator: CreatorRef
    brand_name: str
    brand_email: str
    brand_contact_name: str | None = None
    brand_address: str | None = None

    collab_type: CollabType = CollabType.PAID
    budget: Decimal | None = None
    barter_value: Decimal | None = None
    barter_description: str | None = None
    deliverables: list[str] = Field(default_factory=list)
    deadline: date | None = None
    brief: str | None = None

    status: DealStatus = DealStatus.NEGOTIATION
    brand_response_status: BrandResponseStatus = BrandResponseStatus.PENDING
    deal_execution_status: ExecutionStatus = ExecutionStatus.UNSIGNED

    contract_file_url: str | None = None
    signed_contract_url: str | None = None

    decline_reason: str | None = None
    counter_offer: CounterOffer | None = None
    delivery_details: DeliveryDetails | None = None
    shipping_status: ShippingStatus | None = None

    preferences: ContractPreferences = Field(default_factory=ContractPreferences)

    brand_responded_at: datetime | None = None
    last_reminded_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("budget", "barter_value", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)

    @property
    def is_barter(self) -> bool:
        """Return True if the creator is compensated in product only."""
        return self.collab_type == CollabType.BARTER


class ActionToken(BaseModel):
    """A bearer capability authorizing exactly one action on one deal."""

    model_config = ConfigDict(frozen=True)

    token: str
    deal_id: str
    action: TokenAction
    expires_at: datetime | None = None
    bound_email: str | None = None
    consumed_at: datetime | None = None
    revoked_at: datetime | None = None
    otp_verified: bool = False
    otp_verified_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime) -> bool:
        """Return True if the token carries an expiry that has passed."""
        return self.expires_at is not None and now >= self.expires_at


class OtpChallenge(BaseModel):
    """A one-time code issued against a signing token.

    Only the sha256 hash of the code is stored.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    token: str
    email: str
    code_hash: str
    issued_at: datetime
    expires_at: datetime
    attempts: int = 0
    consumed: bool = False
    superseded: bool = False


class DeviceInfo(BaseModel):
    """Device details parsed from a signer's user agent."""

    model_config = ConfigDict(frozen=True)

    device_type: str = "desktop"
    browser: str = "Unknown"
    user_agent: str = ""


class Signature(BaseModel):
    """One party's binding signature on a deal's contract."""

    model_config = ConfigDict(frozen=True)

    id: str
    deal_id: str
    role: SignerRole
    signed: bool = True
    signed_at: datetime
    signer_name: str
    signer_email: str
    signer_phone: str | None = None
    contract_version: str = "v3"
    content_snapshot: str
    ip_address: str | None = None
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    otp_verified: bool
    otp_verified_at: datetime | None = None

    @staticmethod
    def record_id(deal_id: str, role: SignerRole) -> str:
        """Return the store key for a deal's signature by *role*."""
        return f"{deal_id}:{role}"


class ClientInfo(BaseModel):
    """Network provenance of an unauthenticated request."""

    model_config = ConfigDict(frozen=True)

    ip_address: str | None = None
    user_agent: str | None = None


class Viewer(BaseModel):
    """An authenticated dashboard user."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: ViewerRole = ViewerRole.CREATOR

    @property
    def is_admin(self) -> bool:
        """Return True for administrator sessions."""
        return self.role == ViewerRole.ADMIN


class SideEffectReport(BaseModel):
    """Outcome of a best-effort side effect attached to a committed transition."""

    model_config = ConfigDict(frozen=True)

    effect: str
    ok: bool
    detail: str | None = None
