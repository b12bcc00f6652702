"""Shared FastAPI dependency helpers: DB sessions and session/role guards."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.config import Settings, get_settings
from campus_api.core.background import BackgroundTaskRunner, get_background_runner
from campus_api.core.errors import ForbiddenError, SessionNotFoundError, UnauthorizedError
from campus_api.core.request_info import session_token
from campus_api.core.sessions import SessionPayload
from campus_api.db.session import get_db_session
from campus_api.services.auth_service import AuthService, get_auth_service
from campus_api.services.session_metadata_service import (
    SessionMetadataService,
    get_session_metadata_service,
)


@dataclass(frozen=True)
class SessionContext:
    """Resolved session for the current request."""

    payload: SessionPayload
    token: str


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """Expose the request-scoped async database session dependency."""
    async for session in get_db_session():
        yield session


async def require_session(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
    runner: Annotated[BackgroundTaskRunner, Depends(get_background_runner)],
) -> SessionContext:
    """Resolve the caller's session or fail with 401.

    Cache backend failures are not converted and surface as 500.
    """
    token = session_token(request, settings.session.cookie_name)
    if not token:
        raise UnauthorizedError()
    try:
        payload = await auth_service.get_session(token)
    except SessionNotFoundError as exc:
        raise UnauthorizedError() from exc

    request.state.session = payload
    request.state.session_token = token
    request.state.user = {"user_id": payload.user_id, "role": payload.role}
    runner.spawn("touch_last_active", metadata_service.touch_last_active(token))
    return SessionContext(payload=payload, token=token)


def require_role(*roles: str) -> Callable[..., Awaitable[SessionContext]]:
    """Build a dependency that admits sessions whose role matches, ignoring case."""
    allowed = {role.lower() for role in roles}

    async def dependency(
        context: Annotated[SessionContext, Depends(require_session)],
    ) -> SessionContext:
        if context.payload.role.lower() not in allowed:
            raise ForbiddenError()
        return context

    return dependency
