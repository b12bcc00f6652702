"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from campus_api.config import Settings, configure_structlog, get_settings
from campus_api.core.background import get_background_runner
from campus_api.core.sessions import get_redis_client
from campus_api.db.session import dispose_engine
from campus_api.error_handlers import register_exception_handlers
from campus_api.middleware import LoggingMiddleware, RateLimitMiddleware, RequestIdMiddleware
from campus_api.middleware.rate_limit import SlidingWindowRedis
from campus_api.routers import auth, health, me, sessions, users

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Drain background work and release pooled connections on shutdown."""
    logger.info("application_started")
    yield
    await get_background_runner().drain()
    await dispose_engine()
    await get_redis_client().aclose()
    logger.info("application_stopped")


def create_app(
    settings: Settings | None = None,
    rate_limit_redis: SlidingWindowRedis | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_structlog(settings)

    app = FastAPI(title=settings.app.service, lifespan=lifespan)
    app.add_middleware(
        RateLimitMiddleware,
        redis_client=rate_limit_redis,
        default_requests_per_minute=settings.rate_limit.default_requests_per_minute,
        login_requests_per_minute=settings.rate_limit.login_requests_per_minute,
        otp_requests_per_minute=settings.rate_limit.otp_requests_per_minute,
        trust_proxy_headers=settings.app.trust_proxy_headers,
    )
    app.add_middleware(LoggingMiddleware, trust_proxy_headers=settings.app.trust_proxy_headers)
    if settings.app.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.app.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
            expose_headers=["X-Request-ID"],
        )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app, trust_proxy_headers=settings.app.trust_proxy_headers)
    app.include_router(auth.router)
    app.include_router(me.router)
    app.include_router(sessions.router)
    app.include_router(users.router)
    app.include_router(health.router)
    return app


app = create_app()
