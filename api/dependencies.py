"""FastAPI dependencies for dependency injection."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.identity import Identity, TokenMissingError
from core.middleware.authentication import get_identity


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Session factory built by the application lifespan."""
    return request.app.state.session_factory


async def require_identity(request: Request) -> Identity:
    """
    Require an authenticated caller.

    The authentication middleware has already rejected bad tokens on
    protected paths; this only guards routes reached without one.
    """
    identity = get_identity(request)
    if identity is None:
        raise TokenMissingError("Authentication required")
    return identity
