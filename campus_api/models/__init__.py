"""ORM model exports."""

from campus_api.models.email_log import EmailLog
from campus_api.models.login_session import LoginSession
from campus_api.models.otp_code import OTPCode
from campus_api.models.user import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_USER, USER_STATUSES, User
from campus_api.models.user_preferences import UserPreferences

__all__ = [
    "ROLE_ADMIN",
    "ROLE_SUPER_ADMIN",
    "ROLE_USER",
    "USER_STATUSES",
    "EmailLog",
    "LoginSession",
    "OTPCode",
    "User",
    "UserPreferences",
]
