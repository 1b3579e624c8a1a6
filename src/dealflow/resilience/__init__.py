"""Resilience infrastructure for outbound API calls with retry and error notification."""

from dealflow.resilience.retry import configure_error_notifier, is_transient, resilient_api_call

__all__ = [
    "configure_error_notifier",
    "is_transient",
    "resilient_api_call",
]
