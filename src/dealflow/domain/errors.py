"""Domain-specific exception classes for the deal workflow."""

from __future__ import annotations


class DealflowError(Exception):
    """Base class for all domain errors in the deal workflow.

    Attributes:
        code: Short machine-readable slug surfaced to API clients.
    """

    code = "error"


class NotFoundError(DealflowError):
    """Raised when a token, deal, or signature does not exist.

    Attributes:
        kind: The kind of record that was looked up.
        key: The identifier that was not found.
    """

    code = "not_found"

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found")


class ExpiredError(DealflowError):
    """Raised when a token is used after its validity window."""

    code = "expired"

    def __init__(self, message: str = "This link has expired") -> None:
        super().__init__(message)


class ConflictError(DealflowError):
    """Raised when an action meets a deal or role in an incompatible state."""

    code = "conflict"


class AlreadySignedError(ConflictError):
    """Raised when a role that already signed attempts to sign again.

    Attributes:
        deal_id: The deal that was already signed.
        role: The role whose signature already exists.
    """

    code = "already_signed"

    def __init__(self, deal_id: str, role: str) -> None:
        self.deal_id = deal_id
        self.role = role
        super().__init__("Contract has already been signed")


class DealValidationError(DealflowError):
    """Raised when a payload is malformed, before any state is touched.

    Attributes:
        field: Name of the offending field, if known.
    """

    code = "validation_error"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class DependencyError(DealflowError):
    """Raised when storage, rendering, or email delivery fails.

    Attributes:
        dependency: Name of the failing collaborator (``"storage"``, ``"render"``, ...).
    """

    code = "dependency_failure"

    def __init__(self, dependency: str, message: str) -> None:
        self.dependency = dependency
        super().__init__(message)


class InvalidOtpError(DealflowError):
    """Raised when a one-time code is wrong, expired, spent, or exhausted.

    Attributes:
        attempts_remaining: Verification attempts left on the active challenge.
    """

    code = "invalid_otp"

    def __init__(self, message: str, attempts_remaining: int | None = None) -> None:
        self.attempts_remaining = attempts_remaining
        super().__init__(message)


class OtpRequiredError(DealflowError):
    """Raised when signing is attempted before OTP verification."""

    code = "otp_required"

    def __init__(self) -> None:
        super().__init__("OTP verification required before signing")


class TokenActionMismatchError(DealflowError):
    """Raised when a token is presented for an action it does not encode.

    Attributes:
        expected: The action the caller required.
        actual: The action the token was minted for.
    """

    code = "invalid_token"

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid token for {expected}")


class AccessDeniedError(DealflowError):
    """Raised when a session viewer is not a participant on the deal."""

    code = "access_denied"

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class RateLimitedError(DealflowError):
    """Raised when a one-time code is requested again inside the cooldown.

    Attributes:
        retry_after_seconds: Seconds until another code may be sent.
    """

    code = "rate_limited"

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Please wait {retry_after_seconds} seconds before requesting a new code")


class InvalidTransitionError(DealflowError):
    """Raised when an invalid state transition is attempted.

    Attributes:
        axis: The status axis that rejected the event.
        current_state: The state the axis was in when the transition was attempted.
        event: The event that was rejected.
    """

    code = "invalid_transition"

    def __init__(self, axis: str, current_state: str, event: str) -> None:
        self.axis = axis
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply event '{event}' to {axis} in state '{current_state}'")
