"""Outbound email senders.

``ResendEmailSender`` posts to the Resend HTTP API through httpx with the
shared retry policy.  ``LogEmailSender`` is used in development when no API
key is configured: it logs a redacted summary instead of sending.
"""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from dealflow.resilience.retry import resilient_api_call

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com"


class EmailMessage(BaseModel):
    """A rendered email ready for delivery."""

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    html: str
    text: str | None = None


class EmailSender(Protocol):
    """Anything that can deliver an :class:`EmailMessage`."""

    def send(self, message: EmailMessage) -> str: ...


class ResendEmailSender:
    """Send email through the Resend REST API.

    Args:
        api_key: Resend API key.
        from_email: The ``From`` header, e.g. ``"Dealflow <noreply@example.com>"``.
        client: Optional preconfigured ``httpx.Client`` (tests inject a
                ``MockTransport``-backed client).
    """

    def __init__(self, api_key: str, from_email: str, client: httpx.Client | None = None) -> None:
        self._from_email = from_email
        self._client = client or httpx.Client(base_url=RESEND_API_URL, timeout=10.0)
        self._headers = {"Authorization": f"Bearer {api_key}"}

    @resilient_api_call("resend")
    def send(self, message: EmailMessage) -> str:
        """Send *message* and return the provider's message id.

        Raises:
            httpx.HTTPStatusError: If Resend rejects the message.
        """
        payload: dict[str, object] = {
            "from": self._from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text is not None:
            payload["text"] = message.text

        response = self._client.post("/emails", json=payload, headers=self._headers)
        response.raise_for_status()
        message_id = str(response.json().get("id", ""))
        logger.info("Email sent", provider="resend", message_id=message_id, subject=message.subject)
        return message_id

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()


class LogEmailSender:
    """Development sender that records messages in the log only."""

    def send(self, message: EmailMessage) -> str:
        """Log the recipient domain and subject; bodies may hold codes and are not logged."""
        domain = message.to.rsplit("@", 1)[-1]
        logger.info(
            "Email delivery skipped (no provider configured)",
            to_domain=domain,
            subject=message.subject,
        )
        return "logged"
