"""Best-effort email delivery for committed transitions."""

from __future__ import annotations

import structlog

from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import EventKind
from dealflow.domain.models import SideEffectReport
from dealflow.notifications.sender import EmailMessage, EmailSender
from dealflow.observability.metrics import SIDE_EFFECT_FAILURES

logger = structlog.get_logger()


class Notifier:
    """Deliver emails without ever failing the caller.

    Args:
        sender: The email sender to deliver through.
        audit_logger: Optional audit writer; failed deliveries for a deal are
                      recorded as ``SIDE_EFFECT_FAILED``.
        ops_email: Operator address for retry-exhaustion alerts.
    """

    def __init__(
        self,
        sender: EmailSender,
        audit_logger: AuditLogger | None = None,
        ops_email: str = "",
    ) -> None:
        self._sender = sender
        self._audit = audit_logger
        self._ops_email = ops_email

    def deliver(
        self, message: EmailMessage, *, effect: str, deal_id: str | None = None
    ) -> SideEffectReport:
        """Send *message*, converting any failure into a report.

        Args:
            message: The email to send.
            effect: Short label for the side effect (``"email.contract_ready"``).
            deal_id: Deal the email belongs to, for the audit trail.

        Returns:
            A :class:`SideEffectReport` with ``ok=False`` if delivery failed.
        """
        try:
            self._sender.send(message)
        except Exception as exc:
            logger.warning("Email delivery failed", effect=effect, deal_id=deal_id, error=str(exc))
            SIDE_EFFECT_FAILURES.labels(effect=effect).inc()
            if self._audit is not None and deal_id is not None:
                self._audit.record(
                    deal_id,
                    EventKind.SIDE_EFFECT_FAILED,
                    metadata={"effect": effect, "error": type(exc).__name__},
                )
            return SideEffectReport(effect=effect, ok=False, detail="Email delivery failed")
        return SideEffectReport(effect=effect, ok=True)

    def notify_operator(self, subject: str, body: str) -> None:
        """Email the operator address, if one is configured."""
        if not self._ops_email:
            logger.info("Operator alert not sent (no ops email configured)", subject=subject)
            return
        self._sender.send(
            EmailMessage(to=self._ops_email, subject=subject, html=f"<pre>{body}</pre>", text=body)
        )
