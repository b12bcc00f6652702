"""Caller profile and preference routes."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.dependencies import SessionContext, get_database_session, require_session
from campus_api.schemas.preferences import PreferencesResponse, UpdatePreferencesRequest
from campus_api.schemas.users import MeResponse
from campus_api.services.preferences_service import (
    PreferencesService,
    get_preferences_service,
)
from campus_api.services.user_service import UserService, get_user_service

router = APIRouter(prefix="/api", tags=["me"])
logger = structlog.get_logger(__name__)


@router.get("/me", response_model=MeResponse, response_model_exclude_none=True)
async def me(
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> MeResponse:
    """Return the caller's profile, or just the session identity if the lookup fails."""
    session = context.payload
    fallback = MeResponse(
        user_id=session.user_id,
        username=session.username,
        email=session.email,
        role=session.role,
    )
    try:
        user = await user_service.get_by_id(db_session=db_session, user_id=session.user_id)
    except SQLAlchemyError as exc:
        logger.warning("profile_lookup_failed", user_id=session.user_id, error=str(exc))
        return fallback
    if user is None:
        return fallback
    return MeResponse(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        status=user.status,
        name=user.name,
        phone=user.phone,
        enrollment_number=user.enrollment_number,
        programme=user.programme,
        course=user.course,
        year=user.year,
        expiry_date=user.expiry_date,
        hostel=user.hostel,
    )


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    preferences_service: Annotated[PreferencesService, Depends(get_preferences_service)],
) -> PreferencesResponse:
    preferences = await preferences_service.get_preferences(
        db_session=db_session, user_id=context.payload.user_id
    )
    return PreferencesResponse(accent_color=preferences.accent_color, theme=preferences.theme)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    payload: UpdatePreferencesRequest,
    context: Annotated[SessionContext, Depends(require_session)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    preferences_service: Annotated[PreferencesService, Depends(get_preferences_service)],
) -> PreferencesResponse:
    preferences = await preferences_service.update_preferences(
        db_session=db_session,
        user_id=context.payload.user_id,
        accent_color=payload.accent_color,
        theme=payload.theme,
    )
    return PreferencesResponse(accent_color=preferences.accent_color, theme=preferences.theme)
