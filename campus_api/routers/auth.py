"""Login, logout and password-change OTP routes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.config import Settings, get_settings
from campus_api.core.devices import describe_device
from campus_api.core.errors import SessionBackendError, ValidationError
from campus_api.core.geolocation import IPLocator, get_ip_locator
from campus_api.core.request_info import client_ip, session_token
from campus_api.dependencies import get_database_session
from campus_api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SendOTPRequest,
    SessionInfo,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from campus_api.services.auth_service import AuthService, get_auth_service
from campus_api.services.otp_service import OTPService, get_otp_service
from campus_api.services.session_metadata_service import (
    SessionMetadataService,
    get_session_metadata_service,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


def _cookie_secure(settings: Settings) -> bool:
    return settings.session.cookie_secure or settings.session.cookie_samesite == "none"


def set_session_cookie(response: Response, settings: Settings, token: str, max_age: int) -> None:
    """Attach the HTTP-only session cookie using the configured SameSite policy."""
    response.set_cookie(
        key=settings.session.cookie_name,
        value=token,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite=settings.session.cookie_samesite,
        secure=_cookie_secure(settings),
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie with the same attributes it was set with."""
    response.delete_cookie(
        key=settings.session.cookie_name,
        path="/",
        httponly=True,
        samesite=settings.session.cookie_samesite,
        secure=_cookie_secure(settings),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
    locator: Annotated[IPLocator, Depends(get_ip_locator)],
) -> LoginResponse:
    """Authenticate by username or email and open a cookie-backed session."""
    session, token = await auth_service.login(
        db_session=db_session,
        identifier=payload.username,
        password=payload.password,
    )

    user_agent = request.headers.get("user-agent") or "Unknown"
    ip_address = client_ip(request, settings.app.trust_proxy_headers)
    location = await locator.locate(ip_address)
    expires_at = datetime.now(UTC) + timedelta(seconds=auth_service.session_ttl_seconds)
    try:
        await metadata_service.record_login(
            db_session=db_session,
            user_id=session.user_id,
            token=token,
            device_info=describe_device(user_agent),
            user_agent=user_agent,
            ip_address=ip_address,
            location=location,
            expires_at=expires_at,
        )
    except Exception as exc:
        await db_session.rollback()
        logger.warning("session_metadata_write_failed", user_id=session.user_id, error=str(exc))

    set_session_cookie(response, settings, token, auth_service.session_ttl_seconds)
    logger.info("login_succeeded", user_id=session.user_id)
    return LoginResponse(
        session=SessionInfo(
            user_id=session.user_id,
            username=session.username,
            email=session.email,
            role=session.role,
        ),
        access_token=token,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    metadata_service: Annotated[SessionMetadataService, Depends(get_session_metadata_service)],
) -> MessageResponse:
    """End the caller's session if any; always succeeds."""
    token = session_token(request, settings.session.cookie_name)
    if token:
        try:
            await metadata_service.mark_logged_out(db_session=db_session, token=token)
        except Exception as exc:
            await db_session.rollback()
            logger.warning("session_metadata_logout_failed", error=str(exc))
        try:
            await auth_service.logout(token)
        except SessionBackendError as exc:
            logger.warning("session_cache_delete_failed", error=str(exc.__cause__ or exc))

    clear_session_cookie(response, settings)
    return MessageResponse(message="Logout successful")


@router.post("/send-otp", response_model=MessageResponse)
async def send_otp(
    payload: SendOTPRequest,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    otp_service: Annotated[OTPService, Depends(get_otp_service)],
) -> MessageResponse:
    """Issue a password-change code for an existing account."""
    await otp_service.request_code(db_session=db_session, email=payload.email)
    return MessageResponse(message="OTP sent successfully to your email")


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(
    payload: VerifyOTPRequest,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    otp_service: Annotated[OTPService, Depends(get_otp_service)],
) -> VerifyOTPResponse:
    """Consume a pending code; mismatches and expired codes are rejected with 400."""
    valid = await otp_service.verify_code(
        db_session=db_session, email=payload.email, code=payload.otp
    )
    if not valid:
        raise ValidationError("invalid otp", "invalid_otp")
    return VerifyOTPResponse()
