"""Resilient API call decorator with tenacity retry and operator notification.

Outbound calls to storage and email providers get 3 attempts (2 retries)
with exponential backoff and jitter.  Only transient failures are retried;
after the final attempt an operator alert is sent and the original
exception is re-raised.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

logger = structlog.get_logger()

# Module-level notifier for error reporting (set at startup to avoid an import cycle)
_notifier: Any = None

F = TypeVar("F", bound=Callable[..., Any])


def configure_error_notifier(notifier: Any) -> None:
    """Set the module-level notifier for error reporting.

    Args:
        notifier: An object with a ``notify_operator(subject, body)`` method,
                  typically the application's :class:`~dealflow.notifications.Notifier`.
                  Pass ``None`` to disable alerts.
    """
    global _notifier
    _notifier = notifier


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth retrying.

    Transport errors (timeouts, connection resets) and HTTP 429/5xx
    responses are transient.  Everything else, including 4xx client
    errors, is raised immediately.
    """
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


def _api_name(retry_state: RetryCallState) -> str:
    return getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"


def notify_on_final_failure(retry_state: RetryCallState) -> None:
    """Log failure and alert the operator on final retry exhaustion.

    Args:
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = _api_name(retry_state)

    logger.error(
        "API call failed after all retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )

    if _notifier is not None:
        try:
            _notifier.notify_operator(
                subject=f"API Error: {api_name}",
                body=(
                    f"{api_name} failed after {retry_state.attempt_number} attempts.\n"
                    f"Error: {exception}"
                ),
            )
        except Exception:
            logger.exception("Failed to send operator error notification")

    if exception is not None:
        raise exception


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt."""
    logger.warning(
        "Retrying API call",
        api_name=_api_name(retry_state),
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(api_name: str, *, wait: wait_base | None = None) -> Callable[[F], F]:
    """Create a retry decorator for an outbound API call.

    Returns a tenacity retry decorator configured with:
    - 3 attempts maximum
    - Exponential backoff with jitter (0.5s multiplier, 5s max, up to 1s jitter)
    - Retries only for :func:`is_transient` failures
    - Warning log before each retry
    - Operator notification on final failure
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs and alerts).
        wait: Override the backoff strategy (tests pass ``wait_none()``).

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for the logging callbacks
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            stop=stop_after_attempt(3),
            wait=wait or wait_exponential(multiplier=0.5, max=5) + wait_random(0, 1),
            retry=retry_if_exception(is_transient),
            before_sleep=_before_sleep_log,
            retry_error_callback=notify_on_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
