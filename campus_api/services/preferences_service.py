"""Per-user accent colour and theme preferences."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from campus_api.core.errors import ValidationError
from campus_api.models.user_preferences import (
    DEFAULT_ACCENT_COLOR,
    DEFAULT_THEME,
    UserPreferences,
)

ACCENT_COLORS = (
    "blue",
    "indigo",
    "purple",
    "violet",
    "fuchsia",
    "pink",
    "rose",
    "red",
    "orange",
    "amber",
    "yellow",
    "lime",
    "green",
    "emerald",
    "teal",
    "cyan",
    "sky",
)
THEMES = ("light", "dark", "system")


@dataclass(frozen=True)
class Preferences:
    accent_color: str
    theme: str


class PreferencesService:
    """Read and upsert preferences keyed by user id."""

    async def get_preferences(self, db_session: AsyncSession, user_id: int) -> Preferences:
        """Return stored preferences, creating a defaults row on first access."""
        result = await db_session.execute(
            select(UserPreferences).where(UserPreferences.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            return Preferences(accent_color=row.accent_color, theme=row.theme)
        return await self._upsert(
            db_session=db_session,
            user_id=user_id,
            accent_color=DEFAULT_ACCENT_COLOR,
            theme=DEFAULT_THEME,
        )

    async def update_preferences(
        self,
        db_session: AsyncSession,
        user_id: int,
        accent_color: str | None,
        theme: str | None,
    ) -> Preferences:
        """Validate and store new values; omitted fields keep their current value."""
        if accent_color is not None and accent_color not in ACCENT_COLORS:
            raise ValidationError("invalid accent color", "invalid_accent_color")
        if theme is not None and theme not in THEMES:
            raise ValidationError("invalid theme", "invalid_theme")
        current = await self.get_preferences(db_session=db_session, user_id=user_id)
        return await self._upsert(
            db_session=db_session,
            user_id=user_id,
            accent_color=accent_color or current.accent_color,
            theme=theme or current.theme,
        )

    async def _upsert(
        self,
        db_session: AsyncSession,
        user_id: int,
        accent_color: str,
        theme: str,
    ) -> Preferences:
        statement = insert(UserPreferences).values(
            user_id=user_id, accent_color=accent_color, theme=theme
        )
        statement = statement.on_conflict_do_update(
            index_elements=[UserPreferences.user_id],
            set_={
                "accent_color": statement.excluded.accent_color,
                "theme": statement.excluded.theme,
                "updated_at": func.now(),
            },
        )
        await db_session.execute(statement)
        await db_session.commit()
        return Preferences(accent_color=accent_color, theme=theme)


@lru_cache
def get_preferences_service() -> PreferencesService:
    """Create and cache preferences service dependency."""
    return PreferencesService()
