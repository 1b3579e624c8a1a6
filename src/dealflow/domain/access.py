"""Participant checks for session-gated dashboard operations."""

from __future__ import annotations

from dealflow.domain.errors import AccessDeniedError
from dealflow.domain.models import Deal, Viewer


def require_participant(deal: Deal, viewer: Viewer) -> None:
    """Allow the deal's creator or an administrator.

    Brands have no dashboard account; they act only through tokens.

    Raises:
        AccessDeniedError: If *viewer* is neither.
    """
    if viewer.is_admin or viewer.user_id == deal.creator.id:
        return
    raise AccessDeniedError()


def require_creator(deal: Deal, viewer: Viewer) -> None:
    """Allow only the deal's own creator.

    Raises:
        AccessDeniedError: If *viewer* is anyone else, administrators included.
    """
    if viewer.user_id != deal.creator.id:
        raise AccessDeniedError("Only the creator of this deal can perform this action")
