"""Tests for the resilient outbound-call decorator."""

from __future__ import annotations

import httpx
import pytest
from tenacity import RetryCallState, wait_none

from dealflow.resilience.retry import configure_error_notifier, is_transient, resilient_api_call


class RecordingNotifier:
    def __init__(self) -> None:
        self.alerts: list[tuple[str, str]] = []

    def notify_operator(self, subject: str, body: str) -> None:
        self.alerts.append((subject, body))


@pytest.fixture
def ops() -> RecordingNotifier:
    notifier = RecordingNotifier()
    configure_error_notifier(notifier)
    yield notifier
    configure_error_notifier(None)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.test/x")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("boom", request=request, response=response)


class TestIsTransient:
    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (httpx.ConnectError("refused"), True),
            (httpx.ReadTimeout("slow"), True),
            (_status_error(429), True),
            (_status_error(503), True),
            (_status_error(409), False),
            (_status_error(401), False),
            (ValueError("bad"), False),
        ],
    )
    def test_classifies(self, exc: BaseException, expected: bool) -> None:
        assert is_transient(exc) is expected


class TestResilientApiCall:
    def test_retries_transient_then_succeeds(self, ops: RecordingNotifier) -> None:
        calls = {"n": 0}

        @resilient_api_call("flaky", wait=wait_none())
        def call() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise httpx.ConnectError("refused")
            return "ok"

        assert call() == "ok"
        assert calls["n"] == 3
        assert ops.alerts == []

    def test_exhaustion_reraises_and_alerts(self, ops: RecordingNotifier) -> None:
        calls = {"n": 0}

        @resilient_api_call("storage", wait=wait_none())
        def call() -> None:
            calls["n"] += 1
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            call()
        assert calls["n"] == 3
        (subject, body) = ops.alerts[0]
        assert subject == "API Error: storage"
        assert "3 attempts" in body

    def test_client_errors_raise_immediately(self, ops: RecordingNotifier) -> None:
        calls = {"n": 0}

        @resilient_api_call("resend", wait=wait_none())
        def call() -> None:
            calls["n"] += 1
            raise _status_error(422)

        with pytest.raises(httpx.HTTPStatusError):
            call()
        assert calls["n"] == 1
        assert ops.alerts == []

    def test_alert_failure_does_not_mask_error(self) -> None:
        class BrokenNotifier:
            def notify_operator(self, subject: str, body: str) -> None:
                raise RuntimeError("smtp down")

        configure_error_notifier(BrokenNotifier())
        try:

            @resilient_api_call("storage", wait=wait_none())
            def call() -> None:
                raise httpx.ConnectError("refused")

            with pytest.raises(httpx.ConnectError):
                call()
        finally:
            configure_error_notifier(None)


class TestDefaultBackoff:
    @pytest.mark.parametrize(("attempt", "low", "high"), [(1, 0.5, 1.5), (2, 1.0, 2.0), (8, 5, 6)])
    def test_bounds(self, attempt: int, low: float, high: float) -> None:
        @resilient_api_call("storage")
        def call() -> None:
            return None

        state = RetryCallState(call.retry, call, (), {})
        state.attempt_number = attempt
        assert low <= call.retry.wait(state) <= high
