"""
Shared API Dependencies
=======================

Request-scoped helpers for FastAPI routes.

Authentication happens upstream; the authenticated user id reaches this
service in the X-User-ID header.
"""

from fastapi import Header, HTTPException, Request, status

from itsm_portal.infrastructure.realtime import ChangeFeed


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-ID")
) -> str:
    """Return the caller's user id or reject the request."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header"
        )
    return x_user_id.strip()


def get_change_feed(request: Request) -> ChangeFeed:
    """Change feed constructed at startup."""
    return request.app.state.change_feed
