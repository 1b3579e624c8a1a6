"""Request ID middleware for HTTP request tracing.

Every response carries an ``X-Request-ID`` header, echoed from the client or
generated.  The ID, method and path are bound into structlog contextvars so
service-layer log lines for the request can be correlated.
"""

from __future__ import annotations

import re
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

# Path segments after these prefixes are bearer tokens.
_TOKEN_PATH = re.compile(r"^(/api/contract-ready/)[^/]+")


def loggable_path(path: str) -> str:
    """Return *path* with any embedded action token masked."""
    return _TOKEN_PATH.sub(r"\1<token>", path)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every HTTP request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind request context for logging and set the response header.

        A client-supplied ID is reused only if it is a short token of safe
        characters; anything else is replaced by a fresh UUID4.
        """
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        request_id = supplied if _VALID_REQUEST_ID.match(supplied) else str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            service="dealflow",
            method=request.method,
            path=loggable_path(request.url.path),
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
