"""Single-action capability tokens for links that require no login.

A token is a 256-bit random string stored against one deal and one
action.  Presenting it for any other action fails closed.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel, ConfigDict

from dealflow.domain.errors import ExpiredError, NotFoundError, TokenActionMismatchError
from dealflow.domain.models import ActionToken, utc_now
from dealflow.domain.types import TokenAction
from dealflow.store.base import RecordKind, RecordStore

logger = structlog.get_logger()

TOKEN_BYTES = 32


def generate_token() -> str:
    """Return a URL-safe token with 256 bits of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def calculate_expiry(days: int, now: datetime | None = None) -> datetime:
    """Return the expiry instant *days* from *now*."""
    return (now or utc_now()) + timedelta(days=days)


class ResolvedToken(BaseModel):
    """What a token grants, without failing on expiry."""

    model_config = ConfigDict(frozen=True)

    token: str
    deal_id: str
    action: TokenAction
    expired: bool
    consumed: bool
    bound_email: str | None = None


class TokenService:
    """Mint, resolve, and consume action tokens.

    Args:
        store: Record store holding ``action_token`` records.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def mint(
        self,
        deal_id: str,
        action: TokenAction,
        expires_at: datetime | None = None,
        bound_email: str | None = None,
    ) -> ActionToken:
        """Create and persist a new token.

        Args:
            deal_id: The deal the token acts on.
            action: The one action the token authorizes.
            expires_at: Optional expiry; ``None`` never expires.
            bound_email: Address that OTP codes for this token go to.

        Returns:
            The stored :class:`ActionToken`.
        """
        record = ActionToken(
            token=generate_token(),
            deal_id=deal_id,
            action=action,
            expires_at=expires_at,
            bound_email=bound_email.strip().lower() if bound_email else None,
            created_at=self._clock(),
        )
        self._store.insert(RecordKind.ACTION_TOKEN, record.token, record.model_dump(mode="json"))
        logger.info(
            "Action token minted", deal_id=deal_id, action=str(action), expires_at=expires_at
        )
        return record

    def load(self, token: str) -> ActionToken:
        """Return the stored token record.

        Raises:
            NotFoundError: If the token is unknown or revoked.
        """
        data = self._store.get(RecordKind.ACTION_TOKEN, token) if token else None
        if data is None:
            raise NotFoundError("token", "<redacted>")
        record = ActionToken.model_validate(data)
        if record.revoked_at is not None:
            raise NotFoundError("token", "<redacted>")
        return record

    def resolve(self, token: str) -> ResolvedToken:
        """Describe what *token* grants.

        Expired tokens resolve with ``expired=True`` so callers can show a
        specific "link expired" message.

        Raises:
            NotFoundError: If the token is unknown or revoked.
        """
        record = self.load(token)
        return ResolvedToken(
            token=record.token,
            deal_id=record.deal_id,
            action=record.action,
            expired=record.is_expired(self._clock()),
            consumed=record.consumed_at is not None,
            bound_email=record.bound_email,
        )

    def require(
        self, token: str, *actions: TokenAction, allow_expired: bool = False
    ) -> ActionToken:
        """Return the token record if it grants one of *actions* and is live.

        With *allow_expired* the expiry check is left to the caller, which
        still needs the record to explain an already-settled deal.

        Raises:
            NotFoundError: If the token is unknown or revoked.
            TokenActionMismatchError: If the token encodes a different action.
            ExpiredError: If the token has expired.
        """
        record = self.load(token)
        if record.action not in actions:
            logger.warning(
                "Token presented for wrong action",
                deal_id=record.deal_id,
                token_action=str(record.action),
                required=[str(a) for a in actions],
            )
            raise TokenActionMismatchError("/".join(str(a) for a in actions), str(record.action))
        if not allow_expired and record.is_expired(self._clock()):
            raise ExpiredError()
        return record

    def consume(self, token: str) -> datetime:
        """Mark *token* spent and return when it was first consumed.

        Calling this again returns the original timestamp unchanged.
        """
        record = self.load(token)
        if record.consumed_at is not None:
            return record.consumed_at

        now = self._clock()
        updated = self._store.update_if(
            RecordKind.ACTION_TOKEN, token, {"consumed_at": None}, {"consumed_at": now}
        )
        if updated is None:
            # Another caller consumed it first; report their timestamp.
            return self.load(token).consumed_at or now
        return now

    def revoke(self, token: str) -> None:
        """Invalidate *token* so it resolves as unknown from now on."""
        self._store.update_if(
            RecordKind.ACTION_TOKEN, token, {"revoked_at": None}, {"revoked_at": self._clock()}
        )

    def mark_otp_verified(self, token: str, verified_at: datetime) -> ActionToken:
        """Record successful OTP verification on a signing token."""
        updated = self._store.update_if(
            RecordKind.ACTION_TOKEN,
            token,
            {},
            {"otp_verified": True, "otp_verified_at": verified_at},
        )
        if updated is None:
            raise NotFoundError("token", "<redacted>")
        return ActionToken.model_validate(updated)

    def tokens_for(self, deal_id: str, action: TokenAction | None = None) -> list[ActionToken]:
        """Return every token minted for *deal_id*, optionally filtered by action."""
        filters: dict[str, object] = {"deal_id": deal_id}
        if action is not None:
            filters["action"] = action
        records = self._store.find(RecordKind.ACTION_TOKEN, filters)
        return [ActionToken.model_validate(d) for d in records]
