"""Redis-backed sliding-window rate limiting middleware."""

from __future__ import annotations

import math
import time
from typing import Protocol
from uuid import uuid4

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from campus_api.config import get_settings
from campus_api.core.request_info import client_ip
from campus_api.core.sessions import get_redis_client

logger = structlog.get_logger(__name__)
_WINDOW_SECONDS = 60
_LOGIN_PATH = "/api/auth/login"
_OTP_PATHS = frozenset({"/api/auth/send-otp", "/api/auth/verify-otp"})
_EXEMPT_PREFIXES = ("/health",)


class SlidingWindowRedis(Protocol):
    """Redis operations used by the rate limiter."""

    async def zremrangebyscore(self, key: str, min: str | int, max: int) -> int: ...

    async def zcard(self, key: str) -> int: ...

    async def zadd(self, key: str, mapping: dict[str, int]) -> int: ...

    async def expire(self, key: str, ttl_seconds: int) -> bool: ...


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply per-client, per-path sliding-window request limits.

    Login and OTP paths get their own stricter limits. When Redis is
    unavailable requests are let through.
    """

    def __init__(
        self,
        app,
        redis_client: SlidingWindowRedis | None = None,
        default_requests_per_minute: int | None = None,
        login_requests_per_minute: int | None = None,
        otp_requests_per_minute: int | None = None,
        trust_proxy_headers: bool = False,
    ) -> None:
        super().__init__(app)
        self._trust_proxy_headers = trust_proxy_headers
        self._redis = redis_client or get_redis_client()
        explicit = (default_requests_per_minute, login_requests_per_minute, otp_requests_per_minute)
        if None in explicit:
            limits = get_settings().rate_limit
            explicit = (
                default_requests_per_minute or limits.default_requests_per_minute,
                login_requests_per_minute or limits.login_requests_per_minute,
                otp_requests_per_minute or limits.otp_requests_per_minute,
            )
        self._default_limit, self._login_limit, self._otp_limit = explicit
        self._window_milliseconds = _WINDOW_SECONDS * 1000

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if request.method == "OPTIONS" or path.startswith(_EXEMPT_PREFIXES):
            return await call_next(request)

        limit = self._resolve_limit(path)
        bucket_key = f"rate_limit:{path}:{client_ip(request, self._trust_proxy_headers)}"
        now_ms = int(time.time() * 1000)
        window_start = now_ms - self._window_milliseconds

        try:
            await self._redis.zremrangebyscore(bucket_key, "-inf", window_start)
            current_count = await self._redis.zcard(bucket_key)
            if current_count >= limit:
                logger.warning("rate_limited", path=path, limit=limit)
                return JSONResponse(status_code=429, content={"error": "rate limit exceeded"})

            await self._redis.zadd(bucket_key, {f"{now_ms}:{uuid4()}": now_ms})
            await self._redis.expire(bucket_key, math.ceil(self._window_milliseconds / 1000) + 1)
        except RedisError:
            logger.warning("rate_limit_backend_unavailable", path=path, method=request.method)

        return await call_next(request)

    def _resolve_limit(self, path: str) -> int:
        if path == _LOGIN_PATH:
            return self._login_limit
        if path in _OTP_PATHS:
            return self._otp_limit
        return self._default_limit
