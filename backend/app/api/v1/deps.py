"""
API Dependencies

Database session and acting-user dependencies. Authentication happens
upstream; the caller's identity arrives in the X-User-Id header.
"""
from typing import Optional

from fastapi import Header

from app.db.session import get_db

DEFAULT_ACTOR = "system"

__all__ = ["get_db", "get_actor", "DEFAULT_ACTOR"]


def get_actor(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """
    Identifier of the user performing the request.

    Returns:
        The X-User-Id header value, or "system" when absent or blank
    """
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return DEFAULT_ACTOR
