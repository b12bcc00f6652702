"""Schemas for the caller profile and user administration."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    """User record without credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
    status: str
    name: str | None = None
    phone: str | None = None
    enrollment_number: str | None = None
    programme: str | None = None
    course: str | None = None
    year: str | None = None
    expiry_date: date | None = None
    hostel: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MeResponse(BaseModel):
    """Caller identity; profile fields are absent when the database is unavailable."""

    user_id: int
    username: str
    email: str
    role: str
    status: str | None = None
    name: str | None = None
    phone: str | None = None
    enrollment_number: str | None = None
    programme: str | None = None
    course: str | None = None
    year: str | None = None
    expiry_date: date | None = None
    hostel: str | None = None


class UserListResponse(BaseModel):
    users: list[UserResponse]


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=256)
    role: str = Field(min_length=1, max_length=50)
    status: str = "active"
    name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    enrollment_number: str | None = Field(default=None, max_length=100)
    programme: str | None = Field(default=None, max_length=100)
    course: str | None = Field(default=None, max_length=255)
    year: str | None = Field(default=None, max_length=10)
    expiry_date: date | None = None
    hostel: str | None = Field(default=None, max_length=100)


class UpdateUserRequest(BaseModel):
    """Partial update; `is_active` is the legacy spelling of active/inactive status."""

    username: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    password: str | None = Field(default=None, max_length=256)
    role: str | None = Field(default=None, min_length=1, max_length=50)
    status: str | None = None
    is_active: bool | None = None
    name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    enrollment_number: str | None = Field(default=None, max_length=100)
    programme: str | None = Field(default=None, max_length=100)
    course: str | None = Field(default=None, max_length=255)
    year: str | None = Field(default=None, max_length=10)
    expiry_date: date | None = None
    hostel: str | None = Field(default=None, max_length=100)
