"""Prometheus metrics instrumentation for the deal workflow.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus custom business counters.
- ``BRAND_RESPONSES``: Counter of applied brand responses by outcome.
- ``CONTRACTS_GENERATED``: Counter of contract documents stored.
- ``SIGNATURES``: Counter of electronic signatures by role.
- ``SIDE_EFFECT_FAILURES``: Counter of best-effort side effects that failed.

Business metrics are updated at state transitions (not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

BRAND_RESPONSES: Counter = Counter(
    "dealflow_brand_responses_total",
    "Brand responses applied to deals",
    ["outcome"],
)

CONTRACTS_GENERATED: Counter = Counter(
    "dealflow_contracts_generated_total",
    "Contract documents rendered and stored",
)

SIGNATURES: Counter = Counter(
    "dealflow_signatures_total",
    "Electronic signatures recorded",
    ["role"],
)

SIDE_EFFECT_FAILURES: Counter = Counter(
    "dealflow_side_effect_failures_total",
    "Best-effort side effects that failed after their transition committed",
    ["effect"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
