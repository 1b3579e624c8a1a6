"""OTP-gated electronic signing and wet-signature uploads.

The brand signs first using the ``sign-as-brand`` link from the
contract-ready email; that mints the creator's ``sign-as-creator`` link.
Once both signatures exist the deal's execution status flips to ``signed``.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict, Field

from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import EventKind
from dealflow.contracts.schema import CONTRACT_VERSION
from dealflow.contracts.storage import BlobStorage
from dealflow.domain.access import require_creator, require_participant
from dealflow.domain.errors import (
    AlreadySignedError,
    ConflictError,
    DealValidationError,
    DependencyError,
    OtpRequiredError,
)
from dealflow.domain.models import (
    ActionToken,
    ClientInfo,
    Deal,
    SideEffectReport,
    Signature,
    Viewer,
    utc_now,
)
from dealflow.domain.types import (
    SIGNING_ACTIONS,
    BrandResponseStatus,
    ExecutionStatus,
    SignerRole,
    TokenAction,
)
from dealflow.notifications import templates
from dealflow.notifications.notifier import Notifier
from dealflow.observability.metrics import SIGNATURES
from dealflow.otp.verifier import OtpVerifier
from dealflow.signing.device import parse_device_info
from dealflow.state_machine import DEAL_STATUS_AXIS, EXECUTION_AXIS, DealStatusEvent, ExecutionEvent
from dealflow.store.base import RecordKind, RecordStore
from dealflow.store.records import load_deal, load_signature, update_deal
from dealflow.tokens.service import TokenService, calculate_expiry

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
PDF_MAGIC = b"%PDF"

_SIGNED_EVENTS = {
    SignerRole.BRAND: EventKind.SIGNED_AS_BRAND,
    SignerRole.CREATOR: EventKind.SIGNED_AS_CREATOR,
}


class SignRequest(BaseModel):
    """Signer identity submitted with a signature."""

    signer_name: str
    signer_email: str
    signer_phone: str | None = None


class OtpDispatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    expires_at: datetime


class OtpVerification(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    verified_at: datetime


class SignOutcome(BaseModel):
    """Result of a successful signature."""

    model_config = ConfigDict(frozen=True)

    signature: Signature
    deal_execution_status: ExecutionStatus
    executed: bool
    side_effects: list[SideEffectReport] = Field(default_factory=list)


class UploadOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    deal: Deal
    signed_contract_url: str


def validate_sign_request(request: SignRequest) -> SignRequest:
    """Strip and check signer identity fields.

    Raises:
        DealValidationError: On a blank name, malformed email, or a phone
            with fewer than 10 digits.
    """
    name = request.signer_name.strip()
    email = request.signer_email.strip().lower()
    phone = request.signer_phone.strip() if request.signer_phone else None
    if not name:
        raise DealValidationError("Signer name is required", field="signer_name")
    if not EMAIL_PATTERN.match(email):
        raise DealValidationError("A valid signer email is required", field="signer_email")
    if phone and len(re.sub(r"\D", "", phone)) < 10:
        raise DealValidationError("Phone number must have at least 10 digits", field="signer_phone")
    return SignRequest(signer_name=name, signer_email=email, signer_phone=phone or None)


def signed_contract_path(deal_id: str, now: datetime) -> str:
    """Return ``signed-contracts/{deal_id}/signed_{epoch_ms}_{deal_id}.pdf``."""
    return f"signed-contracts/{deal_id}/signed_{int(now.timestamp() * 1000)}_{deal_id}.pdf"


class SigningWorkflow:
    """Collect both parties' signatures on a generated contract.

    Args:
        store: Record store holding deals, tokens and signatures.
        tokens: Token service.
        otp: OTP verifier bound to the same store.
        storage: Blob storage for wet-signed uploads.
        audit_logger: Best-effort audit writer.
        notifier: Best-effort email delivery.
        public_app_url: Base URL for links in emails.
        signing_token_ttl_days: Lifetime of the creator's signing link.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore,
        tokens: TokenService,
        otp: OtpVerifier,
        storage: BlobStorage,
        audit_logger: AuditLogger,
        notifier: Notifier,
        *,
        public_app_url: str,
        signing_token_ttl_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._otp = otp
        self._storage = storage
        self._audit = audit_logger
        self._notifier = notifier
        self._base_url = public_app_url
        self._signing_ttl_days = signing_token_ttl_days
        self._clock = clock

    def _signing_token(self, token: str) -> ActionToken:
        return self._tokens.require(token, *SIGNING_ACTIONS)

    @staticmethod
    def _signer_email(record: ActionToken, deal: Deal, role: SignerRole) -> str:
        if record.bound_email:
            return record.bound_email
        fallback = deal.brand_email if role == SignerRole.BRAND else deal.creator.email
        return fallback.strip().lower()

    # ------------------------------------------------------------------
    # OTP
    # ------------------------------------------------------------------

    def send_otp(self, token: str, email: str) -> OtpDispatch:
        """Email a one-time code to the signer bound to *token*.

        Raises:
            TokenActionMismatchError: If *token* is not a signing token.
            ExpiredError: If *token* has expired.
            DealValidationError: If *email* is not the signer's address.
            AlreadySignedError: If this role has already signed.
            RateLimitedError: If a code was sent inside the cooldown.
            DependencyError: If the code could not be delivered.
        """
        record = self._signing_token(token)
        role = SIGNING_ACTIONS[record.action]
        deal = load_deal(self._store, record.deal_id)
        expected = self._signer_email(record, deal, role)
        if (email or "").strip().lower() != expected:
            raise DealValidationError(
                "Email does not match the signer for this link", field="email"
            )
        if load_signature(self._store, deal.id, role) is not None:
            raise AlreadySignedError(deal.id, str(role))

        challenge, code = self._otp.issue(record, expected)
        report = self._notifier.deliver(
            templates.otp_code(expected, code, self._otp.ttl_minutes, deal),
            effect="email.otp",
            deal_id=deal.id,
        )
        if not report.ok:
            raise DependencyError("email", "Failed to send verification code. Please try again.")

        self._audit.record(
            deal.id, EventKind.OTP_SENT, actor_id=str(role), metadata={"role": str(role)}
        )
        return OtpDispatch(
            success=True,
            message="Verification code sent to your email",
            expires_at=challenge.expires_at,
        )

    def verify_otp(self, token: str, code: str) -> OtpVerification:
        """Check the code the signer typed.

        Raises:
            TokenActionMismatchError: If *token* is not a signing token.
            ExpiredError: If *token* has expired.
            InvalidOtpError: If the code is wrong, expired, spent or exhausted.
        """
        record = self._signing_token(token)
        role = SIGNING_ACTIONS[record.action]
        verified_at = self._otp.verify(record, code)
        self._audit.record(
            record.deal_id,
            EventKind.OTP_VERIFIED,
            actor_id=str(role),
            metadata={"role": str(role)},
        )
        return OtpVerification(success=True, message="Email verified", verified_at=verified_at)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(
        self, token: str, request: SignRequest, client: ClientInfo | None = None
    ) -> SignOutcome:
        """Record the signer's binding signature.

        Raises:
            TokenActionMismatchError: If *token* is not a signing token.
            ExpiredError: If *token* has expired.
            OtpRequiredError: If the token's OTP has not been verified, whatever
                the payload.
            DealValidationError: If the signer fields are malformed.
            ConflictError: If the deal is not accepted or has no contract.
            AlreadySignedError: If this role has already signed.
        """
        record = self._signing_token(token)
        role = SIGNING_ACTIONS[record.action]
        if not record.otp_verified:
            raise OtpRequiredError()
        signer = validate_sign_request(request)

        deal = load_deal(self._store, record.deal_id)
        if deal.brand_response_status != BrandResponseStatus.ACCEPTED_VERIFIED:
            raise ConflictError("Contract can only be signed after the brand accepts the deal")
        if not deal.contract_file_url:
            raise ConflictError("Contract has not been generated yet")
        if load_signature(self._store, deal.id, role) is not None:
            raise AlreadySignedError(deal.id, str(role))

        now = self._clock()
        client = client or ClientInfo()
        signature = Signature(
            id=Signature.record_id(deal.id, role),
            deal_id=deal.id,
            role=role,
            signed_at=now,
            signer_name=signer.signer_name,
            signer_email=signer.signer_email,
            signer_phone=signer.signer_phone,
            contract_version=CONTRACT_VERSION,
            content_snapshot=(
                f"Contract URL: {deal.contract_file_url}\nSigned at: {now.isoformat()}"
            ),
            ip_address=client.ip_address,
            device_info=parse_device_info(client.user_agent),
            otp_verified=True,
            otp_verified_at=record.otp_verified_at,
        )
        try:
            self._store.insert(
                RecordKind.SIGNATURE, signature.id, signature.model_dump(mode="json")
            )
        except ConflictError:
            raise AlreadySignedError(deal.id, str(role)) from None

        self._tokens.consume(token)
        SIGNATURES.labels(role=str(role)).inc()
        self._audit.record(
            deal.id,
            _SIGNED_EVENTS[role],
            actor_id=str(role),
            metadata={
                "signer_email": signer.signer_email,
                "device": signature.device_info.device_type,
            },
        )
        logger.info("Contract signed", deal_id=deal.id, role=str(role))

        side_effects: list[SideEffectReport] = []
        if role == SignerRole.BRAND:
            side_effects.extend(self._request_creator_signature(deal))

        executed = False
        execution_status = deal.deal_execution_status
        counterpart = SignerRole.CREATOR if role == SignerRole.BRAND else SignerRole.BRAND
        if load_signature(self._store, deal.id, counterpart) is not None:
            executed, reports = self._execute(deal)
            side_effects.extend(reports)
            execution_status = load_deal(self._store, deal.id).deal_execution_status

        return SignOutcome(
            signature=signature,
            deal_execution_status=execution_status,
            executed=executed,
            side_effects=side_effects,
        )

    def _request_creator_signature(self, deal: Deal) -> list[SideEffectReport]:
        creator_token = self._tokens.mint(
            deal.id,
            TokenAction.SIGN_AS_CREATOR,
            expires_at=calculate_expiry(self._signing_ttl_days, self._clock()),
            bound_email=deal.creator.email,
        )
        sign_url = templates.esign_url(self._base_url, creator_token.token)
        return [
            self._notifier.deliver(
                templates.creator_signing_request(deal, sign_url),
                effect="email.creator_signing_request",
                deal_id=deal.id,
            ),
            self._notifier.deliver(
                templates.brand_signed_confirmation(deal),
                effect="email.brand_signed",
                deal_id=deal.id,
            ),
        ]

    def _execute(self, deal: Deal) -> tuple[bool, list[SideEffectReport]]:
        """Flip execution to ``signed`` once; only the winner notifies."""
        changes: dict[str, object] = {
            "deal_execution_status": EXECUTION_AXIS.apply(
                ExecutionStatus.UNSIGNED, ExecutionEvent.SIGN
            ),
            "updated_at": self._clock(),
        }
        current = load_deal(self._store, deal.id)
        if DEAL_STATUS_AXIS.can_apply(current.status, DealStatusEvent.EXECUTE):
            changes["status"] = DEAL_STATUS_AXIS.apply(current.status, DealStatusEvent.EXECUTE)
        updated = update_deal(
            self._store,
            deal.id,
            {"deal_execution_status": ExecutionStatus.UNSIGNED, "status": current.status},
            changes,
        )
        if updated is None:
            return False, []

        self._audit.record(deal.id, EventKind.CONTRACT_EXECUTED)
        logger.info("Contract fully executed", deal_id=deal.id)
        reports = [
            self._notifier.deliver(
                templates.contract_executed(updated, to),
                effect="email.contract_executed",
                deal_id=deal.id,
            )
            for to in (updated.brand_email, updated.creator.email)
        ]
        return True, reports

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_signature(
        self, deal_id: str, role: SignerRole, viewer: Viewer
    ) -> Signature | None:
        """Return the stored signature for *role*, or None if it has not signed.

        Raises:
            AccessDeniedError: If *viewer* is not a participant.
        """
        deal = load_deal(self._store, deal_id)
        require_participant(deal, viewer)
        return load_signature(self._store, deal.id, role)

    def upload_signed_contract(self, deal_id: str, viewer: Viewer, data: bytes) -> UploadOutcome:
        """Store a wet-signed PDF and mark the deal executed.

        Trust rests on the uploader being the deal's own creator, so no OTP
        is involved.

        Raises:
            AccessDeniedError: If *viewer* is not the deal's creator.
            ConflictError: If the deal is not accepted or already executed.
            DealValidationError: If *data* is not a PDF of at most 10 MB.
            DependencyError: If the upload failed.
        """
        deal = load_deal(self._store, deal_id)
        require_creator(deal, viewer)
        if deal.brand_response_status != BrandResponseStatus.ACCEPTED_VERIFIED:
            raise ConflictError("Signed contracts can only be uploaded for accepted deals")
        if deal.deal_execution_status == ExecutionStatus.SIGNED:
            raise ConflictError("Contract has already been executed")
        if not data.startswith(PDF_MAGIC):
            raise DealValidationError("Only PDF files are accepted", field="file")
        if len(data) > MAX_UPLOAD_BYTES:
            raise DealValidationError("File must be 10 MB or smaller", field="file")

        now = self._clock()
        path = signed_contract_path(deal.id, now)
        try:
            self._storage.upload(path, data, "application/pdf")
            url = self._storage.get_public_url(path)
        except DependencyError:
            raise
        except Exception as exc:
            logger.exception("Signed contract upload failed", deal_id=deal.id)
            raise DependencyError("storage", "Failed to upload signed contract") from exc

        changes: dict[str, object] = {
            "deal_execution_status": EXECUTION_AXIS.apply(
                ExecutionStatus.UNSIGNED, ExecutionEvent.SIGN
            ),
            "signed_contract_url": url,
            "updated_at": now,
        }
        if DEAL_STATUS_AXIS.can_apply(deal.status, DealStatusEvent.EXECUTE):
            changes["status"] = DEAL_STATUS_AXIS.apply(deal.status, DealStatusEvent.EXECUTE)
        updated = update_deal(
            self._store,
            deal.id,
            {"deal_execution_status": ExecutionStatus.UNSIGNED, "status": deal.status},
            changes,
        )
        if updated is None:
            logger.warning("Deal changed during signed upload", deal_id=deal.id, orphan_url=url)
            raise ConflictError("Deal changed while uploading. Refresh and try again.")

        self._audit.record(
            deal.id,
            EventKind.SIGNED_CONTRACT_UPLOADED,
            actor_id=viewer.user_id,
            metadata={"path": path, "size": len(data)},
        )
        logger.info("Signed contract uploaded", deal_id=deal.id, size=len(data))
        return UploadOutcome(deal=updated, signed_contract_url=url)
