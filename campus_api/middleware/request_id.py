"""Request ID middleware."""

from __future__ import annotations

from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
_CONTEXT_KEY = "request_id"
_MAX_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Accept or mint a request ID, bind it to structlog and echo it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        request_id = incoming[:_MAX_LENGTH] if incoming else str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(_CONTEXT_KEY)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
