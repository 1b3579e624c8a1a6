"""Email senders, templates, and the best-effort notifier."""

from dealflow.notifications.notifier import Notifier
from dealflow.notifications.sender import (
    EmailMessage,
    EmailSender,
    LogEmailSender,
    ResendEmailSender,
)

__all__ = [
    "EmailMessage",
    "EmailSender",
    "LogEmailSender",
    "Notifier",
    "ResendEmailSender",
]
