"""Shared integration-test fixtures using Postgres and Redis testcontainers."""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Iterator
from typing import Any

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from docker.errors import DockerException

PASSWORD = "Password123!"


def _clear_dependency_caches() -> None:
    """Clear all lru-cached providers between test phases."""
    from campus_api.config import get_settings
    from campus_api.core.background import get_background_runner
    from campus_api.core.geolocation import get_ip_locator
    from campus_api.core.otp import get_otp_store
    from campus_api.core.passwords import get_password_hasher
    from campus_api.core.sessions import get_redis_client, get_session_store
    from campus_api.db.session import get_engine, get_session_factory
    from campus_api.services.auth_service import get_auth_service
    from campus_api.services.email_service import get_email_sender, get_email_service
    from campus_api.services.otp_service import get_otp_service
    from campus_api.services.preferences_service import get_preferences_service
    from campus_api.services.session_metadata_service import get_session_metadata_service
    from campus_api.services.user_service import get_user_service

    for provider in (
        get_settings,
        get_engine,
        get_session_factory,
        get_redis_client,
        get_session_store,
        get_otp_store,
        get_password_hasher,
        get_user_service,
        get_auth_service,
        get_session_metadata_service,
        get_otp_service,
        get_email_sender,
        get_email_service,
        get_preferences_service,
        get_background_runner,
        get_ip_locator,
    ):
        provider.cache_clear()


async def _dispose_async_singletons() -> None:
    """Dispose loop-bound async resources before changing event loops."""
    from campus_api.core.background import get_background_runner
    from campus_api.core.sessions import get_redis_client
    from campus_api.db.session import dispose_engine, get_engine

    if get_background_runner.cache_info().currsize:
        await get_background_runner().drain()
    if get_redis_client.cache_info().currsize:
        await get_redis_client().aclose()
    if get_engine.cache_info().currsize:
        await dispose_engine()


def _redis_connection_url(redis: RedisContainer) -> str:
    """Return a redis:// URL across testcontainers versions."""
    get_url = getattr(redis, "get_connection_url", None)
    if callable(get_url):
        redis_url = get_url()
    else:
        host = redis.get_container_host_ip()
        port = redis.get_exposed_port(6379)
        redis_url = f"redis://{host}:{port}"
    if not redis_url.endswith("/0"):
        redis_url = f"{redis_url}/0"
    return redis_url


def _postgres_async_url(postgres: PostgresContainer) -> str:
    """Return a postgresql+asyncpg URL across testcontainers versions."""
    try:
        postgres_url = postgres.get_connection_url(driver=None)
    except TypeError:
        postgres_url = postgres.get_connection_url()

    if postgres_url.startswith("postgresql+"):
        postgres_url = "postgresql://" + postgres_url.split("://", 1)[1]

    return postgres_url.replace("postgresql://", "postgresql+asyncpg://", 1)


def _set_env_values(env_values: dict[str, str]) -> Callable[[], None]:
    """Apply env vars and return a restore callback."""
    original = {key: os.environ.get(key) for key in env_values}
    os.environ.update(env_values)

    def _restore() -> None:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    return _restore


@pytest.fixture(scope="session")
def integration_env() -> Iterator[dict[str, str]]:
    """Start Postgres/Redis containers and configure settings for integration tests."""
    try:
        postgres = PostgresContainer("postgres:16")
        redis = RedisContainer("redis:7")
        postgres.start()
        redis.start()
    except DockerException as exc:
        if os.environ.get("CI", "").lower() in {"1", "true", "yes"}:
            pytest.fail(f"Docker daemon unavailable in CI for integration tests: {exc}")
        pytest.skip(f"Docker daemon unavailable for integration tests: {exc}")

    database_url = _postgres_async_url(postgres)
    redis_url = _redis_connection_url(redis)

    restore_env = _set_env_values(
        {
            "APP__ENVIRONMENT": "development",
            "APP__SERVICE": "campus-api",
            "APP__LOG_LEVEL": "INFO",
            "DATABASE__URL": database_url,
            "REDIS__URL": redis_url,
            "SMTP__HOST": "",
            "GEOLOCATION__ENABLED": "false",
            "RATE_LIMIT__DEFAULT_REQUESTS_PER_MINUTE": "10000",
            "RATE_LIMIT__LOGIN_REQUESTS_PER_MINUTE": "10000",
            "RATE_LIMIT__OTP_REQUESTS_PER_MINUTE": "10000",
        }
    )
    _clear_dependency_caches()

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")

    try:
        yield {"database_url": database_url, "redis_url": redis_url}
    finally:
        try:
            _clear_dependency_caches()
        finally:
            restore_env()
            postgres.stop()
            redis.stop()


@pytest.fixture(scope="function", autouse=True)
async def reset_state(integration_env: dict[str, str]) -> Iterator[None]:
    """Clear DB tables and flush Redis; isolate async singletons per event loop."""
    del integration_env
    from campus_api.core.sessions import get_redis_client
    from campus_api.db.session import get_session_factory
    from campus_api.models import EmailLog, LoginSession, OTPCode, User, UserPreferences

    await _dispose_async_singletons()
    _clear_dependency_caches()

    session_factory = get_session_factory()
    async with session_factory() as session:
        for model in (EmailLog, OTPCode, UserPreferences, LoginSession, User):
            await session.execute(delete(model))
        await session.commit()

    await get_redis_client().flushdb()
    try:
        yield
    finally:
        await _dispose_async_singletons()
        _clear_dependency_caches()


@pytest.fixture(scope="function")
async def db_session_factory(reset_state: None) -> async_sessionmaker[AsyncSession]:
    """Expose async session factory bound to integration Postgres."""
    del reset_state
    from campus_api.db.session import get_session_factory

    return get_session_factory()


@pytest.fixture(scope="function")
async def db_session(
    db_session_factory: async_sessionmaker[AsyncSession],
) -> Iterator[AsyncSession]:
    """Yield a write-capable async DB session for seeding and assertions."""
    async with db_session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def app_factory(integration_env: dict[str, str]) -> Callable[[], Any]:
    """Build isolated FastAPI app instances for integration tests."""
    del integration_env
    from campus_api.main import create_app

    def _factory() -> Any:
        return create_app()

    return _factory


@pytest.fixture(scope="function")
async def user_factory(db_session: AsyncSession) -> Callable[..., Awaitable[Any]]:
    """Create users with bcrypt password hashes."""
    from campus_api.models import User
    from campus_api.services.user_service import get_user_service

    user_service = get_user_service()

    async def _create(
        username: str,
        role: str = "user",
        status: str = "active",
        password: str = PASSWORD,
    ) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=user_service.hash_password(password),
            role=role,
            status=status,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create
