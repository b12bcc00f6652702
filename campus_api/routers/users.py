"""User administration routes for Admin and SuperAdmin callers."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.core.errors import SessionBackendError
from campus_api.dependencies import SessionContext, get_database_session, require_role
from campus_api.models.user import ROLE_ADMIN, ROLE_SUPER_ADMIN
from campus_api.schemas.auth import MessageResponse
from campus_api.schemas.users import (
    CreateUserRequest,
    UpdateUserRequest,
    UserListResponse,
    UserResponse,
)
from campus_api.services.auth_service import AuthService, get_auth_service
from campus_api.services.user_service import (
    PROFILE_FIELDS,
    UserChanges,
    UserService,
    get_user_service,
)

router = APIRouter(prefix="/api/users", tags=["users"])
logger = structlog.get_logger(__name__)

require_admin = require_role(ROLE_ADMIN, ROLE_SUPER_ADMIN)


def _changes_from_request(payload: UpdateUserRequest) -> UserChanges:
    """Translate the request body, mapping legacy is_active onto status."""
    status = payload.status
    if status is None and payload.is_active is not None:
        status = "active" if payload.is_active else "inactive"
    return UserChanges(
        username=payload.username,
        email=payload.email,
        password=payload.password or None,
        role=payload.role,
        status=status,
        **{field: getattr(payload, field) for field in PROFILE_FIELDS},
    )


@router.get("", response_model=UserListResponse)
async def list_users(
    _: Annotated[SessionContext, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserListResponse:
    users = await user_service.list_users(db_session=db_session)
    return UserListResponse(users=[UserResponse.model_validate(user) for user in users])


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    payload: CreateUserRequest,
    context: Annotated[SessionContext, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    user = await user_service.create_user(
        db_session=db_session,
        actor_role=context.payload.role,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        status=payload.status,
        profile={field: getattr(payload, field) for field in PROFILE_FIELDS},
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    _: Annotated[SessionContext, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    user = await user_service.require_by_id(db_session=db_session, user_id=user_id)
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UpdateUserRequest,
    context: Annotated[SessionContext, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    user = await user_service.update_user(
        db_session=db_session,
        actor_role=context.payload.role,
        user_id=user_id,
        changes=_changes_from_request(payload),
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    context: Annotated[SessionContext, Depends(require_admin)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Delete a user and drop their cached sessions."""
    tokens = await user_service.delete_user(db_session=db_session, user_id=user_id)
    for token in tokens:
        try:
            await auth_service.logout(token)
        except SessionBackendError as exc:
            logger.error("deleted_user_session_purge_failed", user_id=user_id, error=str(exc))
            break
    logger.info("user_deleted_by_admin", user_id=user_id, actor_id=context.payload.user_id)
    return MessageResponse(message="User deleted successfully")
