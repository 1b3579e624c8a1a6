"""Domain types, models, and errors for the deal workflow."""

from dealflow.domain.errors import (
    AccessDeniedError,
    AlreadySignedError,
    ConflictError,
    DealflowError,
    DealValidationError,
    DependencyError,
    ExpiredError,
    InvalidOtpError,
    InvalidTransitionError,
    NotFoundError,
    OtpRequiredError,
    RateLimitedError,
    TokenActionMismatchError,
)
from dealflow.domain.models import (
    ActionToken,
    ClientInfo,
    ContractPreferences,
    CounterOffer,
    CreatorRef,
    Deal,
    DeliveryDetails,
    DeviceInfo,
    Exclusivity,
    OtpChallenge,
    SideEffectReport,
    Signature,
    UsageRights,
    Viewer,
    utc_now,
)
from dealflow.domain.types import (
    BrandResponseStatus,
    CollabType,
    DealStatus,
    ExecutionStatus,
    ShippingStatus,
    SignerRole,
    TokenAction,
    ViewerRole,
    signer_role_for,
)

__all__ = [
    "AccessDeniedError",
    "ActionToken",
    "AlreadySignedError",
    "BrandResponseStatus",
    "ClientInfo",
    "CollabType",
    "ConflictError",
    "ContractPreferences",
    "CounterOffer",
    "CreatorRef",
    "Deal",
    "DealStatus",
    "DealValidationError",
    "DealflowError",
    "DeliveryDetails",
    "DependencyError",
    "DeviceInfo",
    "Exclusivity",
    "ExecutionStatus",
    "ExpiredError",
    "InvalidOtpError",
    "InvalidTransitionError",
    "NotFoundError",
    "OtpChallenge",
    "OtpRequiredError",
    "RateLimitedError",
    "ShippingStatus",
    "SideEffectReport",
    "Signature",
    "SignerRole",
    "TokenAction",
    "TokenActionMismatchError",
    "UsageRights",
    "Viewer",
    "ViewerRole",
    "signer_role_for",
    "utc_now",
]
