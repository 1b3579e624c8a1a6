"""Six-digit one-time codes that gate the signing action.

A challenge is bound to one signing token and one email address.  Only a
salted sha256 hash of the code is stored.  Verifying flips the token's
``otp_verified`` flag; it never signs anything itself.
"""

from __future__ import annotations

import hashlib
import hmac
import math
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from dealflow.domain.errors import InvalidOtpError, RateLimitedError
from dealflow.domain.models import ActionToken, OtpChallenge, utc_now
from dealflow.store.base import RecordKind, RecordStore
from dealflow.tokens.service import TokenService

logger = structlog.get_logger()

CODE_LENGTH = 6


def generate_code() -> str:
    """Return a uniformly random 6-digit code (leading zeros allowed)."""
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def hash_code(token: str, code: str) -> str:
    """Hash *code* salted with the token it was issued for."""
    return hashlib.sha256(f"{token}:{code}".encode()).hexdigest()


class OtpVerifier:
    """Issue and verify one-time codes for signing tokens.

    Args:
        store: Record store holding ``otp_challenge`` records.
        tokens: Token service used to flag verified tokens.
        ttl_minutes: Lifetime of an issued code.
        max_attempts: Wrong guesses allowed per code.
        cooldown_seconds: Minimum gap between two sends; ``0`` disables it.
        clock: Returns the current UTC time; injectable for tests.
        code_factory: Produces raw codes; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore,
        tokens: TokenService,
        *,
        ttl_minutes: int = 10,
        max_attempts: int = 5,
        cooldown_seconds: int = 30,
        clock: Callable[[], datetime] = utc_now,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._ttl = timedelta(minutes=ttl_minutes)
        self._max_attempts = max_attempts
        self._cooldown = timedelta(seconds=cooldown_seconds)
        self._clock = clock
        self._code_factory = code_factory

    @property
    def ttl_minutes(self) -> int:
        """Lifetime of an issued code in minutes."""
        return int(self._ttl.total_seconds() // 60)

    def _challenges(self, token: str) -> list[OtpChallenge]:
        rows = self._store.find(RecordKind.OTP_CHALLENGE, {"token": token})
        return [OtpChallenge.model_validate(r) for r in rows]

    def _active(self, token: str) -> OtpChallenge | None:
        live = [c for c in self._challenges(token) if not c.superseded]
        return max(live, key=lambda c: c.issued_at) if live else None

    def issue(self, token: ActionToken, email: str) -> tuple[OtpChallenge, str]:
        """Issue a fresh code for *token*, superseding any earlier one.

        Args:
            token: The signing token the code is bound to.
            email: Address the code will be delivered to.

        Returns:
            The stored challenge and the raw code to deliver.

        Raises:
            RateLimitedError: If the previous code was sent inside the cooldown.
        """
        now = self._clock()
        previous = self._challenges(token.token)

        if previous and self._cooldown:
            latest = max(previous, key=lambda c: c.issued_at)
            elapsed = now - latest.issued_at
            if elapsed < self._cooldown:
                remaining = math.ceil((self._cooldown - elapsed).total_seconds())
                raise RateLimitedError(remaining)

        for challenge in previous:
            if not challenge.superseded:
                self._store.update_if(
                    RecordKind.OTP_CHALLENGE,
                    challenge.id,
                    {"superseded": False},
                    {"superseded": True},
                )

        code = self._code_factory()
        challenge = OtpChallenge(
            id=uuid.uuid4().hex,
            token=token.token,
            email=email.strip().lower(),
            code_hash=hash_code(token.token, code),
            issued_at=now,
            expires_at=now + self._ttl,
        )
        self._store.insert(
            RecordKind.OTP_CHALLENGE, challenge.id, challenge.model_dump(mode="json")
        )
        logger.info(
            "OTP issued",
            deal_id=token.deal_id,
            superseded=sum(1 for c in previous if not c.superseded),
            expires_at=challenge.expires_at,
        )
        return challenge, code

    def verify(self, token: ActionToken, code: str) -> datetime:
        """Check *code* against the active challenge for *token*.

        Args:
            token: The signing token the code was issued for.
            code: The code the signer typed.

        Returns:
            The verification timestamp recorded on the token.

        Raises:
            InvalidOtpError: If there is no active code, or it is spent,
                expired, exhausted, or does not match.
        """
        now = self._clock()
        challenge = self._active(token.token)
        if challenge is None:
            raise InvalidOtpError("No verification code found. Please request a new code.")
        if challenge.consumed:
            raise InvalidOtpError("This code has already been used. Please request a new code.")
        if now >= challenge.expires_at:
            raise InvalidOtpError("Verification code has expired. Please request a new code.")
        if challenge.attempts >= self._max_attempts:
            raise InvalidOtpError(
                "Too many attempts. Please request a new code.", attempts_remaining=0
            )

        candidate = (code or "").strip()
        if not hmac.compare_digest(hash_code(token.token, candidate), challenge.code_hash):
            attempts = challenge.attempts + 1
            self._store.update_if(
                RecordKind.OTP_CHALLENGE,
                challenge.id,
                {"attempts": challenge.attempts},
                {"attempts": attempts},
            )
            remaining = max(self._max_attempts - attempts, 0)
            logger.info("OTP mismatch", deal_id=token.deal_id, attempts_remaining=remaining)
            raise InvalidOtpError("Invalid verification code.", attempts_remaining=remaining)

        claimed = self._store.update_if(
            RecordKind.OTP_CHALLENGE,
            challenge.id,
            {"consumed": False, "superseded": False},
            {"consumed": True},
        )
        if claimed is None:
            raise InvalidOtpError("This code has already been used. Please request a new code.")

        self._tokens.mark_otp_verified(token.token, now)
        logger.info("OTP verified", deal_id=token.deal_id)
        return now
