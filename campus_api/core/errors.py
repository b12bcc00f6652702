"""Service-layer exception hierarchy rendered by the global error handlers."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors that map to a client-visible status and message."""

    default_detail = "internal server error"
    default_code = "internal_error"
    default_status_code = 500

    def __init__(
        self,
        detail: str | None = None,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.detail = detail or self.default_detail
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status_code
        super().__init__(self.detail)


class InvalidCredentialsError(ServiceError):
    """Raised when the identifier is unknown or the password does not match."""

    default_detail = "invalid credentials"
    default_code = "invalid_credentials"
    default_status_code = 401


class UnauthorizedError(ServiceError):
    """Raised when a request carries no resolvable session."""

    default_detail = "unauthorized"
    default_code = "unauthorized"
    default_status_code = 401


class ForbiddenError(ServiceError):
    default_detail = "forbidden"
    default_code = "forbidden"
    default_status_code = 403


class NotFoundError(ServiceError):
    default_detail = "not found"
    default_code = "not_found"
    default_status_code = 404


class UserNotFoundError(NotFoundError):
    default_detail = "user not found"
    default_code = "user_not_found"


class SessionNotFoundError(NotFoundError):
    """Raised when a session token has no live cache entry or metadata row."""

    default_detail = "session not found"
    default_code = "session_not_found"


class ValidationError(ServiceError):
    default_detail = "invalid request"
    default_code = "invalid_request"
    default_status_code = 400


class ConflictError(ServiceError):
    default_detail = "username or email already exists"
    default_code = "conflict"
    default_status_code = 409


class InternalError(ServiceError):
    """Raised for backend failures whose details must not reach the client."""


class SessionBackendError(InternalError):
    """Raised when the session cache cannot be reached."""

    default_code = "session_backend_unavailable"


class EmailDeliveryError(InternalError):
    """Raised when an email could not be handed to the SMTP server."""

    default_detail = "failed to send email"
    default_code = "email_delivery_failed"
