"""Helpers that read client details out of an incoming request."""

from __future__ import annotations

from starlette.requests import Request


def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """Return the originating client IP.

    X-Forwarded-For and X-Real-IP are client-controlled, so they are only read
    when the service runs behind a proxy that sets them.
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def session_token(request: Request, cookie_name: str) -> str | None:
    """Extract the session token from the cookie, else a Bearer header."""
    cookie_value = request.cookies.get(cookie_name)
    if cookie_value:
        return cookie_value
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None
