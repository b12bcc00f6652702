"""Routes for listing, revoking and reviewing the caller's sessions."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.core.errors import ValidationError
from campus_api.dependencies import SessionContext, get_database_session, require_session
from campus_api.schemas.auth import MessageResponse
from campus_api.schemas.sessions import (
    ActiveSessionResponse,
    LoginHistoryEntryResponse,
    LoginHistoryResponse,
    SessionListResponse,
)
from campus_api.services.auth_service import AuthService, get_auth_service
from campus_api.services.session_metadata_service import (
    SessionMetadataService,
    get_session_metadata_service,
)

router = APIRouter(prefix="/api", tags=["sessions"])
logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200


def parse_history_limit(raw_limit: str | None) -> int:
    """Parse the history limit, falling back to the default when absent or out of range."""
    if raw_limit is None:
        return DEFAULT_HISTORY_LIMIT
    try:
        limit = int(raw_limit)
    except ValueError:
        return DEFAULT_HISTORY_LIMIT
    if limit < 1 or limit > MAX_HISTORY_LIMIT:
        return DEFAULT_HISTORY_LIMIT
    return limit


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
) -> SessionListResponse:
    sessions = await metadata_service.list_active(
        db_session=db_session,
        user_id=context.payload.user_id,
        current_token=context.token,
    )
    return SessionListResponse(
        sessions=[ActiveSessionResponse.model_validate(item) for item in sessions]
    )


@router.get("/login-history", response_model=LoginHistoryResponse)
async def login_history(
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
    limit: Annotated[str | None, Query()] = None,
) -> LoginHistoryResponse:
    entries = await metadata_service.login_history(
        db_session=db_session,
        user_id=context.payload.user_id,
        current_token=context.token,
        limit=parse_history_limit(limit),
    )
    return LoginHistoryResponse(
        history=[LoginHistoryEntryResponse.model_validate(entry) for entry in entries]
    )


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def revoke_session(
    session_id: str,
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
) -> MessageResponse:
    """Revoke one of the caller's other active sessions."""
    if session_id == context.token:
        raise ValidationError("cannot revoke current session", "current_session")
    await metadata_service.revoke(
        db_session=db_session, user_id=context.payload.user_id, token=session_id
    )
    await auth_service.logout(session_id)
    logger.info("session_revoked", user_id=context.payload.user_id)
    return MessageResponse(message="Session revoked successfully")


@router.delete("/sessions", response_model=MessageResponse)
async def revoke_other_sessions(
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
) -> MessageResponse:
    """Revoke every session of the caller except the one making this request."""
    tokens = await metadata_service.mark_all_logged_out_except(
        db_session=db_session,
        user_id=context.payload.user_id,
        keep_token=context.token,
    )
    for token in tokens:
        await auth_service.logout(token)
    logger.info("other_sessions_revoked", user_id=context.payload.user_id, count=len(tokens))
    return MessageResponse(message="All other sessions revoked successfully")
