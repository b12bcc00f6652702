"""Durable session metadata: login provenance, listings, history and revocation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.core.devices import UNKNOWN_DEVICE
from campus_api.core.errors import SessionNotFoundError
from campus_api.db.session import get_session_factory
from campus_api.models.login_session import LoginSession

logger = structlog.get_logger(__name__)

UNKNOWN_IP = "Unknown"
UNKNOWN_LOCATION = "Unknown Location"


@dataclass(frozen=True)
class ActiveSessionView:
    """One live session as shown to its owner."""

    session_id: str
    device_info: str
    ip_address: str
    location: str
    last_active: datetime
    created_at: datetime
    expires_at: datetime
    is_current: bool


@dataclass(frozen=True)
class LoginHistoryEntry:
    """One historical login, live or ended."""

    session_id: str
    device_info: str
    ip_address: str
    location: str
    created_at: datetime
    last_active: datetime
    expires_at: datetime
    logged_out_at: datetime | None
    is_current: bool
    is_expired: bool


class SessionMetadataService:
    """Maintain the sessions table alongside the session cache."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(UTC))

    async def record_login(
        self,
        db_session: AsyncSession,
        user_id: int,
        token: str,
        device_info: str,
        user_agent: str,
        ip_address: str,
        location: str,
        expires_at: datetime,
    ) -> None:
        """Insert the session row, or refresh it when the token already exists."""
        now = self._clock()
        statement = insert(LoginSession).values(
            user_id=user_id,
            session_id=token,
            device_info=device_info,
            user_agent=user_agent,
            ip_address=ip_address,
            location=location,
            last_active=now,
            expires_at=expires_at,
            created_at=now,
        )
        statement = statement.on_conflict_do_update(
            index_elements=[LoginSession.session_id],
            set_={
                "last_active": now,
                "expires_at": statement.excluded.expires_at,
                "logged_out_at": None,
            },
        )
        await db_session.execute(statement)
        await db_session.commit()

    async def touch_last_active(self, token: str) -> None:
        """Bump last_active for a token in a dedicated DB session.

        Runs detached from the request, so it never shares the request's session.
        A missing row is not an error.
        """
        session_factory = self._session_factory or get_session_factory()
        async with session_factory() as db_session:
            await db_session.execute(
                update(LoginSession)
                .where(LoginSession.session_id == token)
                .values(last_active=self._clock())
            )
            await db_session.commit()

    async def mark_logged_out(self, db_session: AsyncSession, token: str) -> None:
        await db_session.execute(
            update(LoginSession)
            .where(LoginSession.session_id == token, LoginSession.logged_out_at.is_(None))
            .values(logged_out_at=self._clock())
        )
        await db_session.commit()

    async def revoke(self, db_session: AsyncSession, user_id: int, token: str) -> None:
        """End one active session of a user, raising when there is none to end."""
        now = self._clock()
        result = await db_session.execute(
            update(LoginSession)
            .where(
                LoginSession.session_id == token,
                LoginSession.user_id == user_id,
                LoginSession.logged_out_at.is_(None),
                LoginSession.expires_at > now,
            )
            .values(logged_out_at=now)
            .returning(LoginSession.id)
        )
        revoked = result.scalars().all()
        await db_session.commit()
        if not revoked:
            raise SessionNotFoundError()

    async def mark_all_logged_out_except(
        self,
        db_session: AsyncSession,
        user_id: int,
        keep_token: str,
    ) -> list[str]:
        """End every other open session of a user and return their tokens."""
        result = await db_session.execute(
            update(LoginSession)
            .where(
                LoginSession.user_id == user_id,
                LoginSession.session_id != keep_token,
                LoginSession.logged_out_at.is_(None),
            )
            .values(logged_out_at=self._clock())
            .returning(LoginSession.session_id)
        )
        tokens = [str(token) for token in result.scalars().all()]
        await db_session.commit()
        return tokens

    async def list_active(
        self,
        db_session: AsyncSession,
        user_id: int,
        current_token: str,
    ) -> list[ActiveSessionView]:
        """Return the user's unexpired, not logged out sessions, most recently used first."""
        now = self._clock()
        result = await db_session.execute(
            select(LoginSession)
            .where(
                LoginSession.user_id == user_id,
                LoginSession.expires_at > now,
                LoginSession.logged_out_at.is_(None),
            )
            .order_by(LoginSession.last_active.desc())
        )
        return [
            ActiveSessionView(
                session_id=row.session_id,
                device_info=row.device_info or UNKNOWN_DEVICE,
                ip_address=row.ip_address or UNKNOWN_IP,
                location=row.location or UNKNOWN_LOCATION,
                last_active=row.last_active,
                created_at=row.created_at,
                expires_at=row.expires_at,
                is_current=row.session_id == current_token,
            )
            for row in result.scalars().all()
        ]

    async def login_history(
        self,
        db_session: AsyncSession,
        user_id: int,
        current_token: str,
        limit: int,
    ) -> list[LoginHistoryEntry]:
        """Return up to `limit` sessions of any state, newest login first.

        An expired session that was never logged out reports its expiry as
        the logout time.
        """
        now = self._clock()
        result = await db_session.execute(
            select(LoginSession)
            .where(LoginSession.user_id == user_id)
            .order_by(LoginSession.created_at.desc())
            .limit(limit)
        )
        entries: list[LoginHistoryEntry] = []
        for row in result.scalars().all():
            is_expired = row.expires_at <= now
            logged_out_at = row.logged_out_at
            if logged_out_at is None and is_expired:
                logged_out_at = row.expires_at
            entries.append(
                LoginHistoryEntry(
                    session_id=row.session_id,
                    device_info=row.device_info or UNKNOWN_DEVICE,
                    ip_address=row.ip_address or UNKNOWN_IP,
                    location=row.location or UNKNOWN_LOCATION,
                    created_at=row.created_at,
                    last_active=row.last_active,
                    expires_at=row.expires_at,
                    logged_out_at=logged_out_at,
                    is_current=row.session_id == current_token,
                    is_expired=is_expired,
                )
            )
        return entries

    async def cleanup_expired(self, db_session: AsyncSession) -> int:
        """Delete rows whose expiry has passed and return how many were removed."""
        result = await db_session.execute(
            delete(LoginSession)
            .where(LoginSession.expires_at <= self._clock())
            .returning(LoginSession.id)
        )
        removed = len(result.scalars().all())
        await db_session.commit()
        logger.info("expired_sessions_removed", count=removed)
        return removed


@lru_cache
def get_session_metadata_service() -> SessionMetadataService:
    """Create and cache session metadata service dependency."""
    return SessionMetadataService()
