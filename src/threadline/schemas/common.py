"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for every payload: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(APIModel):
    """Public identity fields embedded in other payloads."""

    id: int
    name: str | None = None
    username: str | None = None
    image: str | None = None


class PageMeta(APIModel):
    """Cursor fields shared by every paginated listing."""

    next_cursor: int | None = None
    has_next_page: bool = False


class Message(APIModel):
    success: bool = True
    message: str
