"""Bearer-JWT sessions for the creator dashboard endpoints.

Brands never hold a session; their endpoints authenticate by action token.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from dealflow.domain.models import Viewer, utc_now
from dealflow.domain.types import ViewerRole

security_scheme = HTTPBearer(auto_error=False)

SESSION_TTL = timedelta(hours=12)


def create_session_token(
    user_id: str,
    secret: str,
    role: ViewerRole = ViewerRole.CREATOR,
    algorithm: str = "HS256",
    now: datetime | None = None,
) -> str:
    """Issue a session JWT with ``sub``, ``role`` and ``exp`` claims."""
    expire = (now or utc_now()) + SESSION_TTL
    payload = {"sub": user_id, "role": str(role), "exp": expire}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> Viewer | None:
    """Return the viewer a session JWT names, or ``None`` if it is invalid."""
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    try:
        role = ViewerRole(payload.get("role", ViewerRole.CREATOR))
    except ValueError:
        return None
    return Viewer(user_id=user_id, role=role)


async def get_viewer(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
) -> Viewer:
    """FastAPI dependency resolving the bearer session to a :class:`Viewer`."""
    settings = request.app.state.settings
    secret = settings.session_secret.get_secret_value()
    viewer = None
    if credentials is not None and secret:
        viewer = decode_session_token(credentials.credentials, secret, settings.session_algorithm)
    if viewer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing session"
        )
    return viewer
