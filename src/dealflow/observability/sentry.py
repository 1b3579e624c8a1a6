"""Sentry SDK initialization with structlog-sentry bridge.

Provides:
- ``init_sentry(dsn, environment)``: Initialize Sentry SDK.  No-op when *dsn* is empty.
- ``get_sentry_processor()``: Return a structlog processor that forwards
  ERROR-level log events to Sentry.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

# Request fields that carry bearer tokens or signer identity.
_SCRUBBED_KEYS = frozenset(
    {"token", "otp", "signer_email", "signer_phone", "email", "phone", "authorization"}
)


def scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """Redact action tokens, codes and contact details before an event leaves the process."""
    request = event.get("request") or {}
    for section in ("data", "headers", "query_string"):
        value = request.get(section)
        if isinstance(value, dict):
            request[section] = {
                k: "[redacted]" if k.lower() in _SCRUBBED_KEYS else v for k, v in value.items()
            }
        elif section == "query_string" and value:
            request[section] = "[redacted]"
    return event


def init_sentry(dsn: str, environment: str = "development", release: str | None = None) -> bool:
    """Initialize Sentry SDK with the given *dsn*.

    When *dsn* is empty the function returns immediately without touching
    the SDK.  Safe to call unconditionally at startup.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        environment: Environment tag attached to every event.
        release: Optional release identifier.

    Returns:
        True if Sentry was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[
            # structlog-sentry reports errors; the stdlib logging hook would duplicate them.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Insert this into the structlog processor chain after ``add_log_level``
    and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
