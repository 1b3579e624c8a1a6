"""Map domain errors onto HTTP responses.

Every error body has the same static shape::

    {"success": false, "error": "<message>", "code": "<slug>"}

Unexpected exceptions are logged with their traceback and answered with a
generic 500; tracebacks never reach the client.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dealflow.domain.errors import (
    AccessDeniedError,
    ConflictError,
    DealflowError,
    DealValidationError,
    DependencyError,
    ExpiredError,
    InvalidOtpError,
    InvalidTransitionError,
    NotFoundError,
    OtpRequiredError,
    RateLimitedError,
    TokenActionMismatchError,
)

logger = structlog.get_logger()

# Subclasses resolve through the MRO, so AlreadySignedError maps via ConflictError.
STATUS_CODES: dict[type[DealflowError], int] = {
    NotFoundError: 404,
    ExpiredError: 410,
    ConflictError: 409,
    DealValidationError: 422,
    DependencyError: 502,
    InvalidOtpError: 400,
    OtpRequiredError: 403,
    TokenActionMismatchError: 401,
    AccessDeniedError: 403,
    RateLimitedError: 429,
    InvalidTransitionError: 409,
}


def status_for(exc: DealflowError) -> int:
    """Return the HTTP status code for *exc*."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


def error_body(message: str, code: str, **extra: Any) -> dict[str, Any]:
    return {"success": False, "error": message, "code": code, **extra}


async def handle_domain_error(request: Request, exc: DealflowError) -> JSONResponse:
    status_code = status_for(exc)
    extra: dict[str, Any] = {}
    headers: dict[str, str] = {}
    if isinstance(exc, DealValidationError) and exc.field:
        extra["field"] = exc.field
    if isinstance(exc, InvalidOtpError) and exc.attempts_remaining is not None:
        extra["attempts_remaining"] = exc.attempts_remaining
    if isinstance(exc, RateLimitedError):
        extra["retry_after_seconds"] = exc.retry_after_seconds
        headers["Retry-After"] = str(exc.retry_after_seconds)

    log = logger.warning if status_code >= 500 else logger.info
    log("Request failed", path=request.url.path, code=exc.code, status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content=error_body(str(exc), exc.code, **extra),
        headers=headers or None,
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "unauthorized" if exc.status_code == 401 else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    field = ".".join(str(p) for p in errors[0].get("loc", ())[1:]) if errors else None
    return JSONResponse(
        status_code=422,
        content=error_body("Invalid request payload", "validation_error", field=field or None),
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=500, content=error_body("Internal server error", "internal_error")
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the exception handlers on *app*."""
    app.add_exception_handler(DealflowError, handle_domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, handle_http_error)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, handle_request_validation  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, handle_unexpected)
