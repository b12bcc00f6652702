"""Global exception handlers rendering every error as {"error": message}."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from campus_api.core.errors import ServiceError
from campus_api.core.request_info import client_ip

logger = structlog.get_logger(__name__)

_AUTH_PATH_PREFIXES = ("/api/auth", "/api/sessions")


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the standard JSON error payload."""
    return JSONResponse(status_code=status_code, content={"error": message})


def _extract_message(detail: Any) -> str:
    if isinstance(detail, dict):
        return str(detail.get("error") or detail.get("detail") or "request failed")
    if isinstance(detail, str) and detail:
        return detail
    return "request failed"


def _log_auth_failure(
    request: Request, status_code: int, message: str, trust_proxy_headers: bool = False
) -> None:
    """Emit a warning for client errors on authentication and session paths."""
    if status_code < 400 or status_code >= 500:
        return
    if not request.url.path.startswith(_AUTH_PATH_PREFIXES):
        return
    user_state = getattr(request.state, "user", None)
    user_id = user_state.get("user_id") if isinstance(user_state, dict) else None
    logger.warning(
        "auth_failure",
        event_type="auth_failure",
        user_id=user_id,
        ip_address=client_ip(request, trust_proxy_headers),
        status_code=status_code,
        error=message,
        path=request.url.path,
        method=request.method,
    )


def register_exception_handlers(app: FastAPI, trust_proxy_headers: bool = False) -> None:
    """Register global exception handlers enforcing the error shape."""

    def log_auth_failure(request: Request, status_code: int, message: str) -> None:
        _log_auth_failure(request, status_code, message, trust_proxy_headers)

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "service_error",
                code=exc.code,
                path=request.url.path,
                method=request.method,
                error=str(exc.__cause__ or exc),
            )
        log_auth_failure(request=request, status_code=exc.status_code, message=exc.detail)
        return error_response(status_code=exc.status_code, message=exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = _extract_message(exc.detail)
        log_auth_failure(request=request, status_code=exc.status_code, message=message)
        return error_response(status_code=exc.status_code, message=message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        message = "invalid request body"
        log_auth_failure(request=request, status_code=400, message=message)
        return error_response(status_code=400, message=message)

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        """Mask internal errors; the detail only reaches the log."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_type=type(exc).__name__,
        )
        return error_response(status_code=500, message="internal server error")
