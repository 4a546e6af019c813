"""Notification side effects and the recipient's inbox."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from threadline.models import Notification, NotificationType
from threadline.services.pagination import Page, paginate

logger = logging.getLogger(__name__)

__all__ = ["notify", "list_notifications", "mark_read", "unread_count"]


def notify(
    db: Session,
    *,
    actor_id: int | None,
    recipient_id: int,
    kind: NotificationType,
    message: str,
    data: dict[str, Any] | None = None,
    post_id: int | None = None,
    community_id: int | None = None,
) -> Notification | None:
    """Record a notification without ever failing the calling operation.

    The row is written inside a SAVEPOINT; on database errors the savepoint
    is rolled back, a warning is logged and ``None`` is returned. Actions a
    user takes on their own content produce no notification.
    """
    if actor_id is not None and actor_id == recipient_id:
        return None

    notification = Notification(
        user_id=recipient_id,
        actor_id=actor_id,
        type=kind.value,
        message=message,
        data=data,
        post_id=post_id,
        community_id=community_id,
    )
    try:
        with db.begin_nested():
            db.add(notification)
    except SQLAlchemyError:
        logger.warning(
            "Failed to create %s notification for user %s", kind.value, recipient_id,
            exc_info=True,
        )
        return None
    return notification


@dataclass
class Inbox:
    page: Page[Notification]
    unread_count: int


def unread_count(db: Session, user_id: int) -> int:
    stmt = select(func.count(Notification.id)).where(
        Notification.user_id == user_id, Notification.read.is_(False)
    )
    return db.scalar(stmt) or 0


def list_notifications(
    db: Session,
    user_id: int,
    *,
    unread_only: bool = False,
    kind: str | None = None,
    cursor: int | None = None,
    limit: int,
) -> Inbox:
    """Return one page of ``user_id``'s notifications plus the unread total."""
    stmt = (
        select(Notification)
        .options(joinedload(Notification.actor))
        .where(Notification.user_id == user_id)
    )
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    if kind:
        stmt = stmt.where(Notification.type == kind)
    page = paginate(db, stmt, Notification.id, cursor=cursor, limit=limit)
    return Inbox(page=page, unread_count=unread_count(db, user_id))


def mark_read(db: Session, user_id: int, ids: list[int] | None = None) -> int:
    """Mark the given notifications as read, or all of them when ``ids`` is None.

    An empty ``ids`` list updates nothing. Only rows addressed to
    ``user_id`` are touched. Returns the number of rows updated.
    """
    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    if ids is not None:
        stmt = stmt.where(Notification.id.in_(ids))
    result = db.execute(stmt.execution_options(synchronize_session=False))
    db.commit()
    logger.info("User %s marked %s notifications read", user_id, result.rowcount)
    return result.rowcount
