"""Per-request access log with credential redaction."""

from __future__ import annotations

from time import perf_counter
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from campus_api.core.request_info import client_ip

REDACTED = "***REDACTED***"
_SENSITIVE_FRAGMENTS = ("password", "token", "otp", "session", "cookie", "authorization")

logger = structlog.get_logger(__name__)


def redact_query(params: dict[str, Any]) -> dict[str, Any]:
    """Mask query values whose names suggest credentials or session material."""
    return {
        key: REDACTED
        if any(fragment in key.lower().replace("-", "_") for fragment in _SENSITIVE_FRAGMENTS)
        else value
        for key, value in params.items()
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one `request_completed` event per request.

    Client errors log at warning level; an exception escaping the app logs
    with its traceback as a 500 and is re-raised.
    """

    def __init__(self, app, trust_proxy_headers: bool = False) -> None:
        super().__init__(app)
        self._trust_proxy_headers = trust_proxy_headers

    async def dispatch(self, request: Request, call_next) -> Response:
        started = perf_counter()
        fields: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "query_params": redact_query(dict(request.query_params)),
            "client_ip": client_ip(request, self._trust_proxy_headers),
            "user_agent": request.headers.get("user-agent", ""),
        }

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_completed", status_code=500, **fields, **_elapsed(started))
            raise

        log = logger.warning if response.status_code >= 400 else logger.info
        log("request_completed", status_code=response.status_code, **fields, **_elapsed(started))
        return response


def _elapsed(started: float) -> dict[str, float]:
    return {"duration_ms": round((perf_counter() - started) * 1000, 2)}
