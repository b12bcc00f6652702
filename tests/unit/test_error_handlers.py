"""Unit tests for the global error envelope."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from campus_api import error_handlers as handlers_module
from campus_api.core.errors import ForbiddenError, InvalidCredentialsError, SessionBackendError
from campus_api.error_handlers import register_exception_handlers


class _CaptureLogger:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def warning(self, event: str, **kwargs: Any) -> None:
        self.calls.append(("warning", event, kwargs))

    def error(self, event: str, **kwargs: Any) -> None:
        self.calls.append(("error", event, kwargs))


class _Body(BaseModel):
    name: str


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.post("/api/auth/login")
    async def login() -> None:
        raise InvalidCredentialsError()

    @app.get("/api/users")
    async def users() -> None:
        raise ForbiddenError()

    @app.get("/api/me")
    async def me() -> None:
        raise SessionBackendError()

    @app.get("/api/teapot")
    async def teapot() -> None:
        raise HTTPException(status_code=418, detail="short and stout")

    @app.post("/api/body")
    async def body(payload: _Body) -> dict[str, str]:
        return {"name": payload.name}

    @app.get("/api/crash")
    async def crash() -> None:
        raise RuntimeError("connection string postgres://secret@db")

    return app


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://testserver",
    )


async def test_service_errors_render_envelope() -> None:
    async with _client(_app()) as client:
        login = await client.post("/api/auth/login")
        users = await client.get("/api/users")
        backend = await client.get("/api/me")

    assert (login.status_code, login.json()) == (401, {"error": "invalid credentials"})
    assert (users.status_code, users.json()) == (403, {"error": "forbidden"})
    assert (backend.status_code, backend.json()) == (500, {"error": "internal server error"})


async def test_framework_errors_render_envelope() -> None:
    async with _client(_app()) as client:
        teapot = await client.get("/api/teapot")
        invalid = await client.post("/api/body", json={"nope": 1})
        not_json = await client.post(
            "/api/body", content="{", headers={"content-type": "application/json"}
        )
        missing = await client.get("/api/does-not-exist")

    assert (teapot.status_code, teapot.json()) == (418, {"error": "short and stout"})
    assert (invalid.status_code, invalid.json()) == (400, {"error": "invalid request body"})
    assert not_json.status_code == 400
    assert missing.status_code == 404
    assert missing.json() == {"error": "Not Found"}


async def test_unhandled_exception_is_masked(monkeypatch) -> None:
    capture = _CaptureLogger()
    monkeypatch.setattr(handlers_module, "logger", capture)

    async with _client(_app()) as client:
        response = await client.get("/api/crash")

    assert response.status_code == 500
    assert response.json() == {"error": "internal server error"}
    assert "secret" not in response.text
    assert capture.calls[0][1] == "unhandled_exception"
    assert capture.calls[0][2]["exc_type"] == "RuntimeError"


async def test_auth_failures_are_logged_only_for_auth_paths(monkeypatch) -> None:
    capture = _CaptureLogger()
    monkeypatch.setattr(handlers_module, "logger", capture)

    async with _client(_app()) as client:
        await client.post("/api/auth/login")
        await client.get("/api/users")

    auth_failures = [call for call in capture.calls if call[1] == "auth_failure"]
    assert len(auth_failures) == 1
    assert auth_failures[0][2]["path"] == "/api/auth/login"
    assert auth_failures[0][2]["status_code"] == 401
