"""Schemas for session listing and login history."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ActiveSessionResponse(BaseModel):
    """One live session of the caller."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    device_info: str
    ip_address: str
    location: str
    last_active: datetime
    created_at: datetime
    expires_at: datetime
    is_current: bool


class SessionListResponse(BaseModel):
    sessions: list[ActiveSessionResponse]


class LoginHistoryEntryResponse(BaseModel):
    """One login of the caller, live or ended."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    device_info: str
    ip_address: str
    location: str
    created_at: datetime
    last_active: datetime
    expires_at: datetime
    logged_out_at: datetime | None
    is_current: bool
    is_expired: bool


class LoginHistoryResponse(BaseModel):
    history: list[LoginHistoryEntryResponse]
