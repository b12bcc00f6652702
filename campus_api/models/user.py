"""User credential and profile ORM model."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_api.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from campus_api.models.login_session import LoginSession
    from campus_api.models.user_preferences import UserPreferences

ROLE_USER = "user"
ROLE_ADMIN = "Admin"
ROLE_SUPER_ADMIN = "SuperAdmin"
USER_STATUSES = ("active", "inactive", "expired", "closed")


class User(Base, TimestampMixin):
    """Canonical account record holding credentials, role and campus profile."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'expired', 'closed')", name="status_valid"
        ),
        Index("ix_users_role", "role"),
        Index("ix_users_status", "status"),
        Index("ix_users_enrollment_number", "enrollment_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=ROLE_USER)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    enrollment_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    programme: Mapped[str | None] = mapped_column(String(100), nullable=True)
    course: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hostel: Mapped[str | None] = mapped_column(String(100), nullable=True)

    sessions: Mapped[list[LoginSession]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    preferences: Mapped[UserPreferences | None] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_super_admin(self) -> bool:
        """Return True for SuperAdmin-tier accounts, whose role and status are frozen."""
        return self.role.lower() == ROLE_SUPER_ADMIN.lower()
