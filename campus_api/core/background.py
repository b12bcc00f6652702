"""Bounded runner for detached best-effort background work."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from functools import lru_cache
from typing import Any

import structlog

from campus_api.config import get_settings

logger = structlog.get_logger(__name__)


class BackgroundTaskRunner:
    """Run fire-and-forget coroutines with a per-task deadline and a pending cap.

    Failures and timeouts are logged and never reach the request that spawned
    the work.
    """

    def __init__(self, timeout_seconds: float, max_pending: int) -> None:
        self._timeout_seconds = timeout_seconds
        self._max_pending = max_pending
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> bool:
        """Schedule a coroutine; returns False when it was dropped at capacity."""
        if len(self._tasks) >= self._max_pending:
            coro.close()
            logger.warning("background_task_dropped", task=name, pending=len(self._tasks))
            return False
        task = asyncio.create_task(self._run(name, coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def drain(self) -> None:
        """Wait for in-flight tasks, used during application shutdown."""
        if not self._tasks:
            return
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, name: str, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await asyncio.wait_for(coro, timeout=self._timeout_seconds)
        except TimeoutError:
            logger.warning("background_task_timeout", task=name, timeout=self._timeout_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("background_task_failed", task=name, error=str(exc))


@lru_cache
def get_background_runner() -> BackgroundTaskRunner:
    """Create and cache the process-wide background runner."""
    settings = get_settings()
    return BackgroundTaskRunner(
        timeout_seconds=settings.background.task_timeout_seconds,
        max_pending=settings.background.max_pending_tasks,
    )
