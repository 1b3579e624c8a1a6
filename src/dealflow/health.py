"""Health and readiness endpoints for container orchestration.

- ``GET /health``: liveness; 200 while the process is up.
- ``GET /ready``: readiness; 200 only when both the record store and the
  audit database answer a trivial query, otherwise 503 with per-check detail.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

READINESS_CHECKS = {"record_store": "record_conn", "audit_db": "audit_conn"}


async def _ping(conn: sqlite3.Connection | None) -> str:
    if conn is None:
        return "fail"
    try:
        await asyncio.to_thread(conn.execute, "SELECT 1")
    except sqlite3.Error:
        return "fail"
    return "ok"


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        services: dict[str, Any] = request.app.state.services
        checks = {name: await _ping(services.get(key)) for name, key in READINESS_CHECKS.items()}

        all_ok = all(v == "ok" for v in checks.values())
        return JSONResponse(
            content={"status": "ready" if all_ok else "not_ready", "checks": checks},
            status_code=200 if all_ok else 503,
        )
