"""User lookup and administration services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Any

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.core.errors import (
    ConflictError,
    ForbiddenError,
    UserNotFoundError,
    ValidationError,
)
from campus_api.core.passwords import PasswordHasher, get_password_hasher
from campus_api.models.login_session import LoginSession
from campus_api.models.user import ROLE_SUPER_ADMIN, USER_STATUSES, User

logger = structlog.get_logger(__name__)

PROFILE_FIELDS = (
    "name",
    "phone",
    "enrollment_number",
    "programme",
    "course",
    "year",
    "expiry_date",
    "hostel",
)


@dataclass(frozen=True)
class UserChanges:
    """Partial update for a user; None means "leave unchanged"."""

    username: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None
    status: str | None = None
    name: str | None = None
    phone: str | None = None
    enrollment_number: str | None = None
    programme: str | None = None
    course: str | None = None
    year: str | None = None
    expiry_date: date | None = None
    hostel: str | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, field) is None for field in self.__dataclass_fields__)


def _is_super_admin_role(role: str) -> bool:
    return role.lower() == ROLE_SUPER_ADMIN.lower()


def _validate_status(status: str) -> str:
    """Return the canonical lower-case status, rejecting unknown values."""
    status = status.strip().lower()
    if status not in USER_STATUSES:
        raise ValidationError(
            "invalid status; must be one of: active, inactive, expired, closed",
            "invalid_status",
        )
    return status


class UserService:
    """Service responsible for user retrieval and administration."""

    def __init__(self, password_hasher: PasswordHasher) -> None:
        self._hasher = password_hasher

    async def get_by_identifier(self, db_session: AsyncSession, identifier: str) -> User | None:
        """Fetch a user whose username or email exactly equals the identifier."""
        statement = select(User).where(or_(User.username == identifier, User.email == identifier))
        result = await db_session.execute(statement)
        return result.scalars().first()

    async def get_by_email(self, db_session: AsyncSession, email: str) -> User | None:
        result = await db_session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, db_session: AsyncSession, user_id: int) -> User | None:
        result = await db_session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def require_by_id(self, db_session: AsyncSession, user_id: int) -> User:
        user = await self.get_by_id(db_session=db_session, user_id=user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def list_users(self, db_session: AsyncSession) -> list[User]:
        """Return every user, newest first."""
        statement = select(User).order_by(User.created_at.desc(), User.id.desc())
        result = await db_session.execute(statement)
        return list(result.scalars().all())

    async def create_user(
        self,
        db_session: AsyncSession,
        actor_role: str,
        username: str,
        email: str,
        password: str,
        role: str,
        status: str = "active",
        profile: dict[str, Any] | None = None,
    ) -> User:
        """Create a user; only SuperAdmin callers may create SuperAdmin accounts."""
        if not username or not email or not password or not role:
            raise ValidationError(
                "username, email, password, and role are required", "missing_fields"
            )
        if _is_super_admin_role(role) and not _is_super_admin_role(actor_role):
            raise ForbiddenError("only SuperAdmin can create SuperAdmin users")
        user = User(
            username=username,
            email=email,
            password_hash=self._hasher.hash_password(password),
            role=role,
            status=_validate_status(status),
        )
        for field, value in (profile or {}).items():
            if field in PROFILE_FIELDS:
                setattr(user, field, value)

        db_session.add(user)
        try:
            await db_session.flush()
        except IntegrityError as exc:
            await db_session.rollback()
            raise ConflictError() from exc
        await db_session.commit()
        await db_session.refresh(user)
        logger.info("user_created", user_id=user.id, role=user.role)
        return user

    async def update_user(
        self,
        db_session: AsyncSession,
        actor_role: str,
        user_id: int,
        changes: UserChanges,
    ) -> User:
        """Apply a partial update honouring the SuperAdmin protection rules."""
        if changes.is_empty():
            raise ValidationError("no fields to update", "no_fields")
        user = await self.require_by_id(db_session=db_session, user_id=user_id)

        if changes.role is not None and changes.role != user.role:
            if user.is_super_admin:
                raise ForbiddenError("cannot change the role of SuperAdmin users")
            if _is_super_admin_role(changes.role) and not _is_super_admin_role(actor_role):
                raise ForbiddenError("only SuperAdmin can promote users to SuperAdmin role")
        status = None if changes.status is None else _validate_status(changes.status)
        if status is not None:
            if user.is_super_admin and status != user.status:
                raise ForbiddenError("cannot change the status of SuperAdmin users")

        if changes.username is not None:
            user.username = changes.username
        if changes.email is not None:
            user.email = changes.email
        if changes.password:
            user.password_hash = self._hasher.hash_password(changes.password)
        if changes.role is not None:
            user.role = changes.role
        if status is not None:
            user.status = status
        for field in PROFILE_FIELDS:
            value = getattr(changes, field)
            if value is not None:
                setattr(user, field, value)

        try:
            await db_session.flush()
        except IntegrityError as exc:
            await db_session.rollback()
            raise ConflictError() from exc
        await db_session.commit()
        await db_session.refresh(user)
        logger.info("user_updated", user_id=user.id)
        return user

    async def delete_user(self, db_session: AsyncSession, user_id: int) -> list[str]:
        """Delete a non-SuperAdmin user and return the tokens of their sessions."""
        user = await self.require_by_id(db_session=db_session, user_id=user_id)
        if user.is_super_admin:
            raise ForbiddenError("cannot delete SuperAdmin users")

        tokens_result = await db_session.execute(
            select(LoginSession.session_id).where(LoginSession.user_id == user_id)
        )
        tokens = [str(token) for token in tokens_result.scalars().all()]
        await db_session.execute(delete(User).where(User.id == user_id))
        await db_session.commit()
        logger.info("user_deleted", user_id=user_id, sessions=len(tokens))
        return tokens

    async def seed_superadmin(
        self,
        db_session: AsyncSession,
        username: str,
        email: str,
        password: str,
    ) -> tuple[User, bool]:
        """Create the initial SuperAdmin unless the username or email is taken.

        Returns the user and whether it was created.
        """
        if not username or not email or not password:
            raise ValidationError(
                "admin username, email and password must be set", "missing_fields"
            )
        result = await db_session.execute(
            select(User).where(or_(User.username == username, User.email == email))
        )
        existing = result.scalars().first()
        if existing is not None:
            return existing, False
        user = User(
            username=username,
            email=email,
            password_hash=self._hasher.hash_password(password),
            role=ROLE_SUPER_ADMIN,
            status="active",
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        logger.info("superadmin_seeded", user_id=user.id)
        return user, True

    def hash_password(self, password: str) -> str:
        return self._hasher.hash_password(password)

    def verify_password(self, password_hash: str, password: str) -> bool:
        return self._hasher.verify_password(password_hash, password)


@lru_cache
def get_user_service() -> UserService:
    """Create and cache user service dependency."""
    return UserService(password_hasher=get_password_hasher())
