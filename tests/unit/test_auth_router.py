"""HTTP-level tests for login, logout, profile and OTP routes."""

from __future__ import annotations

from passlib.context import CryptContext

from campus_api.config import SessionSettings, get_settings
from campus_api.services.otp_service import get_otp_service


async def test_login_sets_cookie_and_session_reaches_me(api) -> None:
    async with api.client() as client:
        login_response = await api.login(client, "alice")

        assert login_response.status_code == 200
        body = login_response.json()
        assert body["message"] == "Login successful"
        assert body["session"] == {
            "user_id": 1,
            "username": "alice",
            "email": "alice@example.com",
            "role": "user",
        }
        token = body["access_token"]
        set_cookie = login_response.headers["set-cookie"]
        assert f"session_id={token}" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "Max-Age=86400" in set_cookie
        assert "Path=/" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

        me_response = await client.get("/api/me")

    assert me_response.status_code == 200
    assert me_response.json()["username"] == "alice"
    assert me_response.json()["status"] == "active"
    row = api.metadata.rows[token]
    assert row.device_info == "Chrome on Windows"
    assert row.location == "Pune, Maharashtra, India"


async def test_login_by_email_identifier(api) -> None:
    async with api.client() as client:
        response = await api.login(client, "bob@example.com")

    assert response.status_code == 200
    assert response.json()["session"]["username"] == "bob"


async def test_login_accepts_identifier_field(api) -> None:
    async with api.client() as client:
        response = await client.post(
            "/api/auth/login", json={"identifier": "alice", "password": "Password123!"}
        )

    assert response.status_code == 200
    assert response.json()["session"]["username"] == "alice"


async def test_wrong_password_and_unknown_user_share_one_error(api) -> None:
    async with api.client() as client:
        wrong = await api.login(client, "alice", password="nope")
        unknown = await api.login(client, "nobody")

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "invalid credentials"}
    assert "set-cookie" not in wrong.headers


async def test_login_rejects_long_password_sharing_a_truncated_prefix(api, user_builder) -> None:
    legacy_hash = CryptContext(schemes=["bcrypt"]).hash("p" * 72)
    api.users.users.append(
        user_builder(
            user_id=5,
            username="legacy",
            email="legacy@example.com",
            password_hash=legacy_hash,
        )
    )

    async with api.client() as client:
        response = await api.login(client, "legacy", password="p" * 72 + "guess")

    assert response.status_code == 401
    assert response.json() == {"error": "invalid credentials"}


async def test_login_with_malformed_body_is_bad_request(api) -> None:
    async with api.client() as client:
        response = await client.post("/api/auth/login", json={"username": "alice"})

    assert response.status_code == 400
    assert response.json() == {"error": "invalid request body"}


async def test_login_succeeds_when_metadata_write_fails(api) -> None:
    async def broken_record_login(**kwargs) -> None:
        raise RuntimeError("sessions table unavailable")

    api.metadata.record_login = broken_record_login
    async with api.client() as client:
        response = await api.login(client, "alice")
        me_response = await client.get("/api/me")

    assert response.status_code == 200
    assert me_response.status_code == 200
    assert api.db.rollbacks == 1


async def test_login_cache_failure_is_internal_error(api) -> None:
    api.redis.fail = True
    async with api.client() as client:
        response = await api.login(client, "alice")

    assert response.status_code == 500
    assert response.json() == {"error": "internal server error"}


async def test_logout_ends_session_and_clears_cookie(api) -> None:
    async with api.client() as client:
        login_response = await api.login(client, "alice")
        token = login_response.json()["access_token"]

        logout_response = await client.post("/api/auth/logout")
        assert logout_response.status_code == 200
        assert logout_response.json() == {"message": "Logout successful"}
        assert 'session_id=""' in logout_response.headers["set-cookie"]

        after = await client.get("/api/me", headers={"authorization": f"Bearer {token}"})

    assert after.status_code == 401
    assert after.json() == {"error": "unauthorized"}
    assert api.metadata.rows[token].logged_out_at is not None
    assert f"session:{token}" not in api.redis.values


async def test_logout_clears_cross_site_cookie_with_matching_attributes(api, settings) -> None:
    cross_site = settings.model_copy(
        update={"session": SessionSettings(cookie_samesite="none", cookie_secure=True)}
    )
    api.app.dependency_overrides[get_settings] = lambda: cross_site

    async with api.client() as client:
        login_response = await api.login(client, "alice")
        logout_response = await client.post(
            "/api/auth/logout",
            headers={"authorization": f"Bearer {login_response.json()['access_token']}"},
        )

    set_cookie = login_response.headers["set-cookie"].lower()
    cleared = logout_response.headers["set-cookie"].lower()
    assert "samesite=none" in set_cookie
    assert 'session_id=""' in cleared
    assert "max-age=0" in cleared
    assert "samesite=none" in cleared
    assert "secure" in cleared
    assert "httponly" in cleared


async def test_logout_without_session_still_succeeds(api) -> None:
    async with api.client() as client:
        response = await client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"message": "Logout successful"}


async def test_bearer_token_authenticates_without_cookie(api) -> None:
    async with api.client() as client:
        token = (await api.login(client, "bob")).json()["access_token"]
        client.cookies.clear()

        response = await client.get("/api/me", headers={"authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["user_id"] == 2


async def test_me_falls_back_to_session_when_lookup_fails(api) -> None:
    from sqlalchemy.exc import OperationalError

    async def failing_get_by_id(db_session, user_id):
        raise OperationalError("select", {}, Exception("db down"))

    async with api.client() as client:
        await api.login(client, "alice")
        api.users.get_by_id = failing_get_by_id
        response = await client.get("/api/me")

    assert response.status_code == 200
    assert response.json() == {
        "user_id": 1,
        "username": "alice",
        "email": "alice@example.com",
        "role": "user",
    }


class _StubOTPService:
    def __init__(self, valid: bool) -> None:
        self.valid = valid
        self.requested: list[str] = []

    async def request_code(self, db_session, email: str) -> None:
        self.requested.append(email)

    async def verify_code(self, db_session, email: str, code: str) -> bool:
        return self.valid


async def test_send_otp_route(api) -> None:
    stub = _StubOTPService(valid=True)
    api.app.dependency_overrides[get_otp_service] = lambda: stub
    async with api.client() as client:
        response = await client.post("/api/auth/send-otp", json={"email": "alice@example.com"})

    assert response.status_code == 200
    assert response.json() == {"message": "OTP sent successfully to your email"}
    assert stub.requested == ["alice@example.com"]


async def test_verify_otp_route_valid_and_invalid(api) -> None:
    api.app.dependency_overrides[get_otp_service] = lambda: _StubOTPService(valid=True)
    async with api.client() as client:
        ok = await client.post(
            "/api/auth/verify-otp", json={"email": "alice@example.com", "otp": "123456"}
        )
    api.app.dependency_overrides[get_otp_service] = lambda: _StubOTPService(valid=False)
    async with api.client() as client:
        bad = await client.post(
            "/api/auth/verify-otp", json={"email": "alice@example.com", "otp": "000000"}
        )

    assert ok.status_code == 200
    assert ok.json() == {"valid": True, "message": "OTP verified successfully"}
    assert bad.status_code == 400
    assert bad.json() == {"error": "invalid otp"}


async def test_send_otp_unknown_email_is_not_found(api) -> None:
    from campus_api.core.otp import OTPStore
    from campus_api.services.otp_service import OTPService

    service = OTPService(
        otp_store=OTPStore(redis_client=api.redis, ttl_seconds=300),
        user_service=api.users,
        email_service=None,
        purpose="password_change",
    )
    api.app.dependency_overrides[get_otp_service] = lambda: service
    async with api.client() as client:
        response = await client.post("/api/auth/send-otp", json={"email": "ghost@example.com"})

    assert response.status_code == 404
    assert response.json() == {"error": "user not found"}
