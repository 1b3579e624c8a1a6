"""FastAPI routers, session auth, and error mapping."""

from dealflow.api.auth import create_session_token, decode_session_token, get_viewer
from dealflow.api.errors import register_error_handlers, status_for
from dealflow.api.routes import client_info, router

__all__ = [
    "client_info",
    "create_session_token",
    "decode_session_token",
    "get_viewer",
    "register_error_handlers",
    "router",
    "status_for",
]
