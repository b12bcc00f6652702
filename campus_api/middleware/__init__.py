"""Middleware package exports."""

from campus_api.middleware.logging import LoggingMiddleware
from campus_api.middleware.rate_limit import RateLimitMiddleware
from campus_api.middleware.request_id import RequestIdMiddleware

__all__ = [
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "RequestIdMiddleware",
]
