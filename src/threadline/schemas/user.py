"""User, auth, profile and preference schemas."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import Field

from .common import APIModel, UserSummary

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
URL_PATTERN = r"^https?://\S+$"


class SignupRequest(APIModel):
    """Schema for local account registration."""

    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=256)
    name: str | None = Field(None, max_length=100)


class TokenRequest(APIModel):
    login: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class TokenResponse(APIModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(UserSummary):
    """Schema for the authenticated user's own account."""

    email: str | None = None
    created_at: datetime


class SignupResponse(APIModel):
    user: UserResponse
    access_token: str


class ProfileResponse(APIModel):
    bio: str | None = None
    location: str | None = None
    website: str | None = None
    birth_date: date | None = None


class ConnectionStatusResponse(APIModel):
    status: str
    can_connect: bool
    connection_id: int | None = None
    is_requester: bool | None = None
    created_at: datetime | None = None


class ProfileSummaryResponse(APIModel):
    user: UserSummary
    profile: ProfileResponse | None = None
    followers_count: int
    following_count: int
    posts_count: int
    is_following: bool
    connection: ConnectionStatusResponse


class OnboardingRequest(APIModel):
    username: str = Field(..., min_length=1, max_length=64)
    birth_date: date
    bio: str | None = Field(None, max_length=160)
    location: str | None = Field(None, max_length=100)
    website: str | None = Field(None, max_length=2048, pattern=URL_PATTERN)


class ProfileUpdate(APIModel):
    """Partial profile update; only fields sent are applied."""

    username: str | None = Field(None, min_length=1, max_length=64)
    name: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=320, pattern=EMAIL_PATTERN)
    image: str | None = Field(None, max_length=2048)
    bio: str | None = Field(None, max_length=160)
    location: str | None = Field(None, max_length=100)
    website: str | None = Field(None, max_length=2048, pattern=URL_PATTERN)


class UsernameCheckResponse(APIModel):
    available: bool
    username: str
    message: str


class PreferencesUpdate(APIModel):
    preferences: dict[str, Any]


class ThemeUpdate(APIModel):
    theme: Literal["light", "dark", "system"]


class PreferencesResponse(APIModel):
    preferences: dict[str, Any]
    version: int
    theme: str | None = None
