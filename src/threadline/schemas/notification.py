"""Notification schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from .common import APIModel, PageMeta, UserSummary


class NotificationResponse(APIModel):
    id: int
    type: str
    message: str
    data: dict[str, Any] | None = None
    post_id: int | None = None
    community_id: int | None = None
    read: bool
    created_at: datetime
    actor: UserSummary | None = None


class NotificationPage(PageMeta):
    notifications: list[NotificationResponse]
    unread_count: int


class MarkReadRequest(APIModel):
    ids: list[int] | None = None


class MarkReadResponse(APIModel):
    success: bool = True
    updated: int
