# src/threadline/models/__init__.py
"""SQLAlchemy models for the Threadline application."""

from .community import (
    Community,
    CommunityInvitation,
    CommunityMember,
    CommunityRole,
    CommunityVisibility,
    JoinRequest,
    RequestStatus,
)
from .connection import Connection, ConnectionStatus
from .event import CommunityEvent, EventAttendee, RsvpStatus
from .notification import Notification, NotificationType
from .post import Bookmark, Post, PostVisibility, Reaction, ReactionType
from .user import Follow, Profile, User

__all__ = [
    "Community", "CommunityInvitation", "CommunityMember", "CommunityRole",
    "CommunityVisibility", "JoinRequest", "RequestStatus",
    "Connection", "ConnectionStatus",
    "CommunityEvent", "EventAttendee", "RsvpStatus",
    "Notification", "NotificationType",
    "Bookmark", "Post", "PostVisibility", "Reaction", "ReactionType",
    "Follow", "Profile", "User",
]
