"""Schemas for login, logout and OTP endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field


class LoginRequest(BaseModel):
    """Password login payload; username accepts either a username or an email."""

    username: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("username", "identifier"),
    )
    password: str = Field(min_length=1, max_length=256)


class SessionInfo(BaseModel):
    """Identity carried by a session."""

    user_id: int
    username: str
    email: str
    role: str


class LoginResponse(BaseModel):
    message: str = "Login successful"
    session: SessionInfo
    access_token: str


class MessageResponse(BaseModel):
    message: str


class SendOTPRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class VerifyOTPRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    otp: str = Field(min_length=1, max_length=10)


class VerifyOTPResponse(BaseModel):
    valid: Literal[True] = True
    message: str = "OTP verified successfully"
