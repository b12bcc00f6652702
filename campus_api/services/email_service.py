"""Outbound OTP email delivery with a durable delivery log."""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from functools import lru_cache
from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.config import get_settings
from campus_api.core.errors import EmailDeliveryError
from campus_api.models.email_log import EmailLog

logger = structlog.get_logger(__name__)

OTP_SUBJECT = "Your OTP Code for Password Change"


class EmailSender(Protocol):
    """Contract for email delivery adapters."""

    async def send(self, to_email: str, subject: str, body: str) -> None:
        """Deliver one plaintext email."""


@dataclass(frozen=True)
class SMTPEmailSender:
    """STARTTLS SMTP sender authenticated with username and password."""

    host: str
    port: int
    username: str
    password: str
    from_email: str
    from_name: str
    timeout_seconds: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    async def send(self, to_email: str, subject: str, body: str) -> None:
        """Send an email through SMTP without blocking the event loop."""
        if not self.configured:
            raise EmailDeliveryError("SMTP is not configured", "smtp_not_configured")
        await asyncio.to_thread(self._send_blocking, to_email=to_email, subject=subject, body=body)

    def _send_blocking(self, to_email: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(message)


def render_otp_body(code: str, ttl_minutes: int) -> str:
    return (
        "Hello,\n\n"
        "You have requested to change your password.\n\n"
        f"Your OTP code is: {code}\n\n"
        f"This code will expire in {ttl_minutes} minutes.\n\n"
        "If you did not request this, please ignore this email.\n"
    )


class EmailService:
    """Render, send and log OTP emails."""

    def __init__(self, sender: EmailSender, otp_ttl_seconds: int) -> None:
        self._sender = sender
        self._otp_ttl_minutes = max(otp_ttl_seconds // 60, 1)

    async def send_otp_email(
        self,
        db_session: AsyncSession,
        to_email: str,
        code: str,
        user_id: int | None = None,
    ) -> None:
        """Send the OTP email, log the attempt, and raise when delivery failed."""
        failure: Exception | None = None
        try:
            await self._sender.send(
                to_email=to_email,
                subject=OTP_SUBJECT,
                body=render_otp_body(code, self._otp_ttl_minutes),
            )
        except (EmailDeliveryError, smtplib.SMTPException, OSError) as exc:
            failure = exc

        await self._write_log(
            db_session=db_session,
            to_email=to_email,
            user_id=user_id,
            error=str(failure) if failure is not None else None,
        )
        if failure is not None:
            if isinstance(failure, EmailDeliveryError):
                raise failure
            raise EmailDeliveryError() from failure

    async def _write_log(
        self,
        db_session: AsyncSession,
        to_email: str,
        user_id: int | None,
        error: str | None,
    ) -> None:
        """Append an email_logs row; write failures are logged and dropped."""
        db_session.add(
            EmailLog(
                recipient_email=to_email,
                recipient_user_id=user_id,
                subject=OTP_SUBJECT,
                email_type="otp",
                status="failed" if error else "sent",
                error_message=error,
            )
        )
        try:
            await db_session.commit()
        except Exception as exc:
            await db_session.rollback()
            logger.warning("email_log_write_failed", error=str(exc))


@lru_cache
def get_email_sender() -> EmailSender:
    """Create and cache the SMTP sender from settings."""
    settings = get_settings()
    return SMTPEmailSender(
        host=settings.smtp.host,
        port=settings.smtp.port,
        username=settings.smtp.username,
        password=settings.smtp.password.get_secret_value(),
        from_email=settings.smtp.sender_address,
        from_name=settings.smtp.from_name,
        timeout_seconds=settings.smtp.timeout_seconds,
    )


@lru_cache
def get_email_service() -> EmailService:
    """Create and cache email service dependency."""
    settings = get_settings()
    return EmailService(sender=get_email_sender(), otp_ttl_seconds=settings.otp.ttl_seconds)
