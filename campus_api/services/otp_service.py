"""Password-change one-time codes: issue, deliver and verify."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import structlog
from redis.exceptions import RedisError
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.config import get_settings
from campus_api.core.errors import EmailDeliveryError, InternalError, UserNotFoundError
from campus_api.core.otp import OTPStore, generate_otp, get_otp_store
from campus_api.models.otp_code import OTPCode
from campus_api.services.email_service import EmailService, get_email_service
from campus_api.services.user_service import UserService, get_user_service

logger = structlog.get_logger(__name__)


class OTPService:
    """Issue and verify codes; the cache decides validity, the table is an audit trail."""

    def __init__(
        self,
        otp_store: OTPStore,
        user_service: UserService,
        email_service: EmailService,
        purpose: str,
        max_attempts: int = 5,
        log_codes: bool = False,
        code_generator: Callable[[], str] = generate_otp,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = otp_store
        self._user_service = user_service
        self._email_service = email_service
        self._purpose = purpose
        self._max_attempts = max_attempts
        self._log_codes = log_codes
        self._generate = code_generator
        self._clock = clock or (lambda: datetime.now(UTC))

    async def request_code(self, db_session: AsyncSession, email: str) -> None:
        """Issue a fresh code for an existing account and email it.

        Only the cache write is mandatory; the audit row and the email are
        best effort.
        """
        user = await self._user_service.get_by_email(db_session=db_session, email=email)
        if user is None:
            raise UserNotFoundError()

        code = self._generate()
        try:
            await self._store.save(email, code)
        except RedisError as exc:
            logger.error("otp_store_failed", user_id=user.id, error=str(exc))
            raise InternalError("failed to generate OTP", "otp_store_failed") from exc

        await self._record_issue(db_session=db_session, email=email, code=code, user_id=user.id)
        if self._log_codes:
            logger.info("otp_issued_dev", user_id=user.id, otp=code)

        try:
            await self._email_service.send_otp_email(
                db_session=db_session, to_email=email, code=code, user_id=user.id
            )
        except EmailDeliveryError as exc:
            logger.warning("otp_email_failed", user_id=user.id, error=exc.detail)
            return
        logger.info("otp_email_sent", user_id=user.id)

    async def verify_code(self, db_session: AsyncSession, email: str, code: str) -> bool:
        """Return True and consume the code when it matches the cached one.

        The cache delete is the single-use claim: of two concurrent matching
        calls only the one whose delete removed the key succeeds. A pending
        code is discarded after too many wrong guesses.
        """
        try:
            stored = await self._store.get(email)
            if stored is None:
                return False
            if stored != code:
                await self._count_failure(email)
                return False
            claimed = await self._store.delete(email)
        except RedisError as exc:
            raise InternalError() from exc
        if not claimed:
            return False

        await self._mark_verified(db_session=db_session, email=email, code=code)
        return True

    async def cleanup_stale(self, db_session: AsyncSession) -> int:
        """Delete expired, unverified audit rows and return how many were removed."""
        result = await db_session.execute(
            delete(OTPCode)
            .where(OTPCode.verified.is_(False), OTPCode.expires_at <= self._clock())
            .returning(OTPCode.id)
        )
        removed = len(result.scalars().all())
        await db_session.commit()
        logger.info("stale_otps_removed", count=removed)
        return removed

    async def _count_failure(self, email: str) -> None:
        attempts = await self._store.record_failed_attempt(email)
        if attempts >= self._max_attempts:
            await self._store.delete(email)
            logger.warning("otp_attempts_exhausted", attempts=attempts)

    async def _record_issue(
        self,
        db_session: AsyncSession,
        email: str,
        code: str,
        user_id: int,
    ) -> None:
        db_session.add(
            OTPCode(
                email=email,
                otp_code=code,
                user_id=user_id,
                purpose=self._purpose,
                verified=False,
                expires_at=self._clock() + timedelta(seconds=self._store.ttl_seconds),
            )
        )
        try:
            await db_session.commit()
        except Exception as exc:
            await db_session.rollback()
            logger.warning("otp_audit_write_failed", user_id=user_id, error=str(exc))

    async def _mark_verified(self, db_session: AsyncSession, email: str, code: str) -> None:
        now = self._clock()
        try:
            await db_session.execute(
                update(OTPCode)
                .where(
                    OTPCode.email == email,
                    OTPCode.otp_code == code,
                    OTPCode.verified.is_(False),
                    OTPCode.expires_at > now,
                )
                .values(verified=True, verified_at=now)
            )
            await db_session.commit()
        except Exception as exc:
            await db_session.rollback()
            logger.warning("otp_audit_verify_failed", error=str(exc))


@lru_cache
def get_otp_service() -> OTPService:
    """Create and cache OTP service dependency."""
    settings = get_settings()
    return OTPService(
        otp_store=get_otp_store(),
        user_service=get_user_service(),
        email_service=get_email_service(),
        purpose=settings.otp.purpose,
        max_attempts=settings.otp.max_attempts,
        log_codes=settings.app.environment == "development",
    )
