"""Redis-backed one-time code storage."""

from __future__ import annotations

import secrets
from functools import lru_cache

from redis.asyncio.client import Redis

from campus_api.config import get_settings
from campus_api.core.sessions import get_redis_client


def generate_otp() -> str:
    """Return a uniformly random six digit code, zero padded."""
    return f"{secrets.randbelow(1_000_000):06d}"


class OTPStore:
    """Authoritative store of pending codes, one per email address.

    Redis errors propagate to the caller, which decides the failure mode.
    """

    def __init__(self, redis_client: Redis, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def save(self, email: str, code: str) -> None:
        """Replace any pending code and reset its failed-attempt count."""
        await self._redis.setex(self._key(email), self._ttl_seconds, code)
        await self._redis.delete(self._attempts_key(email))

    async def get(self, email: str) -> str | None:
        value = await self._redis.get(self._key(email))
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else str(value)

    async def delete(self, email: str) -> bool:
        """Remove the pending code; True only for the caller that actually removed it."""
        removed = await self._redis.delete(self._key(email))
        await self._redis.delete(self._attempts_key(email))
        return int(removed) == 1

    async def record_failed_attempt(self, email: str) -> int:
        """Count a wrong guess against the pending code and return the running total."""
        key = self._attempts_key(email)
        attempts = int(await self._redis.incr(key))
        if attempts == 1:
            await self._redis.expire(key, self._ttl_seconds)
        return attempts

    @staticmethod
    def _key(email: str) -> str:
        return f"otp:{email}"

    @staticmethod
    def _attempts_key(email: str) -> str:
        return f"otp_attempts:{email}"


@lru_cache
def get_otp_store() -> OTPStore:
    """Create and cache the OTP store."""
    settings = get_settings()
    return OTPStore(redis_client=get_redis_client(), ttl_seconds=settings.otp.ttl_seconds)
