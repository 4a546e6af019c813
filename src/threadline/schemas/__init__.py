"""
Pydantic schemas for API request/response models.

Fields are snake_case in Python and serialized as camelCase.
"""

from .common import APIModel, Message, PageMeta, UserSummary
from .community import CommunityCreate, CommunityResponse
from .notification import NotificationPage, NotificationResponse
from .post import PostCreate, PostResponse
from .social import ConnectionResponse, FollowRequest
from .user import SignupRequest, UserResponse

__all__ = [
    "APIModel", "Message", "PageMeta", "UserSummary",
    "CommunityCreate", "CommunityResponse",
    "NotificationPage", "NotificationResponse",
    "PostCreate", "PostResponse",
    "ConnectionResponse", "FollowRequest",
    "SignupRequest", "UserResponse",
]
