"""
FastAPI dependencies. Injected into route handlers.
"""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import AuthenticatedUser, authenticate, get_current_user
from .database import get_db as _get_db
from .exceptions import TeamAccessDenied
from .redis import get_redis


async def get_db() -> AsyncSession:
    """Yields an async DB session per request."""
    async for session in _get_db():
        yield session


async def get_user(
    authorization: str = Header(default=""),
    x_team_id: str = Header(default=""),
) -> AuthenticatedUser:
    """
    Resolve the authenticated user and the team they act for.

    401 for a missing or invalid token, 403 when X-Team-Id names a team the
    user does not belong to. Returns the dev user if FF_USE_AUTH0=false.
    """
    try:
        return await get_current_user(authorization, team_id=x_team_id)
    except TeamAccessDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except PermissionError as e:
        raise _unauthorized(e)


def _unauthorized(e: PermissionError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(e),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_authenticated_user(
    authorization: str = Header(default=""),
) -> AuthenticatedUser:
    """Authenticate without selecting a team. For routes that are not team-scoped."""
    try:
        return await authenticate(authorization)
    except PermissionError as e:
        raise _unauthorized(e)


async def require_team(
    user: AuthenticatedUser = Depends(get_user),
) -> AuthenticatedUser:
    """Same as get_user, but document routes also need an active team."""
    if not user.team_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No team selected for this request",
        )
    return user


def get_progress_store():
    """
    Opener for the progress store. The route calls it inside the fail-open
    read, so a Redis client that cannot be built counts as a read failure.
    """
    return get_redis
