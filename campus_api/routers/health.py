"""Health check router endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select

from campus_api.core.sessions import get_redis_client
from campus_api.db.session import get_engine

router = APIRouter(prefix="/health", tags=["health"])
logger = structlog.get_logger(__name__)


async def check_postgres_ready() -> bool:
    """Return True when Postgres accepts a lightweight query."""
    try:
        async with get_engine().connect() as connection:
            await connection.execute(select(1))
    except Exception as exc:
        logger.warning("readiness_postgres_failed", error=str(exc))
        return False
    return True


async def check_redis_ready() -> bool:
    """Return True when Redis responds to PING."""
    try:
        return bool(await get_redis_client().ping())
    except Exception as exc:
        logger.warning("readiness_redis_failed", error=str(exc))
        return False


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness check endpoint."""
    return {"status": "live"}


@router.get("/ready")
async def ready(
    postgres_ready: Annotated[bool, Depends(check_postgres_ready)],
    redis_ready: Annotated[bool, Depends(check_redis_ready)],
) -> dict[str, str]:
    """Readiness check requiring both Postgres and Redis."""
    if not postgres_ready or not redis_ready:
        raise HTTPException(status_code=503, detail="service not ready")
    return {"status": "ready"}
