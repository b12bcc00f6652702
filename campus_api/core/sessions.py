"""Redis-backed session state."""

from __future__ import annotations

import json
import secrets
from dataclasses import asdict, dataclass
from functools import lru_cache

from redis import asyncio as redis_async
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from campus_api.config import get_settings
from campus_api.core.errors import SessionBackendError, SessionNotFoundError


@dataclass(frozen=True)
class SessionPayload:
    """Serializable Redis payload for a logged-in user."""

    user_id: int
    username: str
    email: str
    role: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> SessionPayload:
        data = json.loads(raw)
        return cls(
            user_id=int(data["user_id"]),
            username=str(data["username"]),
            email=str(data["email"]),
            role=str(data["role"]),
        )


def new_session_token() -> str:
    """Return a fresh, unguessable opaque session token."""
    return secrets.token_urlsafe(32)


class SessionStore:
    """Cache of live sessions keyed by token; absence of a key means no session."""

    def __init__(self, redis_client: Redis, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def save(self, token: str, payload: SessionPayload) -> None:
        """Store the payload under the token with the configured TTL."""
        try:
            await self._redis.setex(self._key(token), self._ttl_seconds, payload.to_json())
        except RedisError as exc:
            raise SessionBackendError() from exc

    async def load(self, token: str) -> SessionPayload:
        """Fetch the payload for a token, failing closed when missing or corrupt."""
        try:
            raw_payload = await self._redis.get(self._key(token))
        except RedisError as exc:
            raise SessionBackendError() from exc
        if raw_payload is None:
            raise SessionNotFoundError()
        try:
            return SessionPayload.from_json(raw_payload)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise SessionNotFoundError() from exc

    async def delete(self, token: str) -> None:
        """Remove the session key; deleting an absent key is not an error."""
        try:
            await self._redis.delete(self._key(token))
        except RedisError as exc:
            raise SessionBackendError() from exc

    @staticmethod
    def _key(token: str) -> str:
        return f"session:{token}"


@lru_cache
def get_redis_client() -> Redis:
    """Create and cache the Redis client shared by session, OTP and rate limiting."""
    settings = get_settings()
    return redis_async.from_url(
        settings.redis.url,
        decode_responses=True,
        socket_timeout=settings.redis.socket_timeout_seconds,
        socket_connect_timeout=settings.redis.socket_timeout_seconds,
    )


@lru_cache
def get_session_store() -> SessionStore:
    """Create and cache the session store."""
    settings = get_settings()
    return SessionStore(redis_client=get_redis_client(), ttl_seconds=settings.session.ttl_seconds)
