"""Password login and cache-backed session lifecycle."""

from __future__ import annotations

from functools import lru_cache

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.core.errors import InvalidCredentialsError
from campus_api.core.passwords import PasswordHasher, get_password_hasher
from campus_api.core.sessions import (
    SessionPayload,
    SessionStore,
    get_session_store,
    new_session_token,
)
from campus_api.services.user_service import UserService, get_user_service

logger = structlog.get_logger(__name__)


class AuthService:
    """Authenticate credentials and manage cached sessions.

    The cache entry is the single source of truth for session validity;
    durable metadata is maintained separately by the route layer.
    """

    def __init__(
        self,
        user_service: UserService,
        session_store: SessionStore,
        password_hasher: PasswordHasher,
    ) -> None:
        self._user_service = user_service
        self._session_store = session_store
        self._hasher = password_hasher

    @property
    def session_ttl_seconds(self) -> int:
        return self._session_store.ttl_seconds

    async def login(
        self,
        db_session: AsyncSession,
        identifier: str,
        password: str,
    ) -> tuple[SessionPayload, str]:
        """Verify credentials and open a new session.

        Unknown identifiers and wrong passwords raise the same error. Store
        failures propagate unchanged.
        """
        user = await self._user_service.get_by_identifier(
            db_session=db_session, identifier=identifier
        )
        if user is None:
            self._hasher.dummy_verify()
            raise InvalidCredentialsError()
        if not self._hasher.verify_password(user.password_hash, password):
            raise InvalidCredentialsError()

        payload = SessionPayload(
            user_id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
        )
        token = new_session_token()
        await self._session_store.save(token, payload)
        logger.info("session_created", user_id=user.id)
        return payload, token

    async def logout(self, token: str) -> None:
        await self._session_store.delete(token)

    async def get_session(self, token: str) -> SessionPayload:
        return await self._session_store.load(token)

    def hash_password(self, password: str) -> str:
        return self._hasher.hash_password(password)

    def verify_password(self, password_hash: str, password: str) -> bool:
        return self._hasher.verify_password(password_hash, password)


@lru_cache
def get_auth_service() -> AuthService:
    """Create and cache auth service dependency."""
    return AuthService(
        user_service=get_user_service(),
        session_store=get_session_store(),
        password_hasher=get_password_hasher(),
    )
