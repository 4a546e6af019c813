# src/threadline/models/notification.py
"""Notifications produced as side effects of social actions."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from threadline.db.session import Base
from threadline.db.time import utcnow

from .user import User


class NotificationType(str, enum.Enum):
    CONNECTION_REQUEST = "CONNECTION_REQUEST"
    CONNECTION_ACCEPTED = "CONNECTION_ACCEPTED"
    CONNECTION_REJECTED = "CONNECTION_REJECTED"
    COMMUNITY_INVITATION = "COMMUNITY_INVITATION"
    COMMUNITY_NEW_MEMBER = "COMMUNITY_NEW_MEMBER"
    POST_REPLY = "POST_REPLY"
    POST_REACTION = "POST_REACTION"
    COMMUNITY_EVENT_UPDATED = "COMMUNITY_EVENT_UPDATED"
    COMMUNITY_EVENT_CANCELLED = "COMMUNITY_EVENT_CANCELLED"
    COMMUNITY_EVENT_RSVP = "COMMUNITY_EVENT_RSVP"


class Notification(Base):
    """Message addressed to ``user_id`` about something ``actor_id`` did."""

    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    actor_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("post.id", ondelete="CASCADE"), nullable=True
    )
    community_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("community.id", ondelete="CASCADE"), nullable=True
    )
    read: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    actor: Mapped[User | None] = relationship("User", foreign_keys=[actor_id])
