"""Per-user interface preferences ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_api.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from campus_api.models.user import User

DEFAULT_ACCENT_COLOR = "blue"
DEFAULT_THEME = "system"


class UserPreferences(Base, TimestampMixin):
    """Accent colour and theme chosen by one user."""

    __tablename__ = "user_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    accent_color: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_ACCENT_COLOR
    )
    theme: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_THEME)

    user: Mapped[User] = relationship(back_populates="preferences")
