"""bcrypt password hashing."""

from __future__ import annotations

from functools import lru_cache

from passlib.context import CryptContext

from campus_api.core.errors import ValidationError

# bcrypt only reads this many bytes of input.
MAX_PASSWORD_BYTES = 72


def _too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """Thin wrapper over a passlib bcrypt context."""

    def __init__(self) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    def hash_password(self, password: str) -> str:
        """Generate a salted bcrypt hash for the provided password.

        Passwords longer than 72 bytes are rejected rather than truncated.
        """
        if _too_long(password):
            raise ValidationError(
                f"password must be at most {MAX_PASSWORD_BYTES} bytes", "password_too_long"
            )
        return str(self._context.hash(password))

    def verify_password(self, password_hash: str, password: str) -> bool:
        """Check a plaintext password against a stored hash.

        Mismatches, over-long passwords and malformed or unrecognised hashes
        all return False.
        """
        if _too_long(password):
            return False
        try:
            return bool(self._context.verify(password, password_hash))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Spend a verification's worth of time when no stored hash exists."""
        self._context.dummy_verify()


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Create and cache the process-wide password hasher."""
    return PasswordHasher()
