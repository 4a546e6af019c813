"""Notification inbox endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Query

from threadline.api.dependencies import CurrentUserDep, PageDep, SessionDep
from threadline.models import NotificationType
from threadline.schemas.notification import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationPage,
    NotificationResponse,
)
from threadline.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
async def list_notifications(
    db: SessionDep,
    current_user: CurrentUserDep,
    page: PageDep,
    unread: bool = False,
    kind: Annotated[NotificationType | None, Query(alias="type")] = None,
) -> NotificationPage:
    """The caller's notifications, newest first, with the unread total."""
    cursor, limit = page
    inbox = notification_service.list_notifications(
        db,
        current_user.id,
        unread_only=unread,
        kind=kind.value if kind else None,
        cursor=cursor,
        limit=limit,
    )
    return NotificationPage(
        notifications=[NotificationResponse.model_validate(row) for row in inbox.page.items],
        next_cursor=inbox.page.next_cursor,
        has_next_page=inbox.page.has_next_page,
        unread_count=inbox.unread_count,
    )


@router.patch("", response_model=MarkReadResponse)
async def mark_read(
    db: SessionDep,
    current_user: CurrentUserDep,
    payload: Annotated[MarkReadRequest | None, Body()] = None,
) -> MarkReadResponse:
    """Mark the listed notifications (or all of them) as read."""
    ids = payload.ids if payload else None
    updated = notification_service.mark_read(db, current_user.id, ids)
    return MarkReadResponse(updated=updated)
