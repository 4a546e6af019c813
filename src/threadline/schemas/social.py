"""Follow and connection schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from .common import APIModel, PageMeta, UserSummary


class FollowRequest(APIModel):
    target_user_id: int
    action: Literal["follow", "unfollow"]


class FollowResponse(APIModel):
    success: bool = True
    action: str


class UserPage(PageMeta):
    users: list[UserSummary]


class ConnectionAction(APIModel):
    target_user_id: int
    action: Literal["send_request", "accept", "reject", "block", "remove"]


class ConnectionRespond(APIModel):
    action: Literal["accept", "reject", "block"]


class ConnectionResponse(APIModel):
    """A connection seen from one side; ``user`` is always the other party."""

    id: int
    status: str
    created_at: datetime
    updated_at: datetime
    is_requester: bool
    user: UserSummary


class ConnectionActionResponse(APIModel):
    success: bool = True
    action: str
    connection: ConnectionResponse | None = None


class ConnectionPage(PageMeta):
    connections: list[ConnectionResponse]


class MutualConnectionsResponse(APIModel):
    users: list[UserSummary]
    count: int
