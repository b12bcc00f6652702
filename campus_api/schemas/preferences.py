"""Schemas for user interface preferences."""

from __future__ import annotations

from pydantic import BaseModel


class PreferencesResponse(BaseModel):
    accent_color: str
    theme: str


class UpdatePreferencesRequest(BaseModel):
    accent_color: str | None = None
    theme: str | None = None
