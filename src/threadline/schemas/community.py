"""Community, membership, join request and invitation schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from threadline.models import CommunityVisibility

from .common import APIModel, PageMeta, UserSummary


class CommunityCreate(APIModel):
    """Schema for creating a new community."""

    name: str = Field(..., min_length=1, max_length=64)
    description: str | None = Field(None, max_length=1000)
    visibility: CommunityVisibility = CommunityVisibility.PUBLIC
    image: str | None = Field(None, max_length=2048)


class CommunityUpdate(APIModel):
    name: str | None = Field(None, min_length=1, max_length=64)
    description: str | None = Field(None, max_length=1000)
    visibility: CommunityVisibility | None = None
    image: str | None = Field(None, max_length=2048)


class CommunityResponse(APIModel):
    """Schema for community information returned by the API."""

    id: int
    name: str
    description: str | None
    image: str | None
    visibility: str
    creator_id: int
    created_at: datetime
    member_count: int = 0
    role: str | None = None


class CommunityPage(PageMeta):
    communities: list[CommunityResponse]


class JoinResponse(APIModel):
    success: bool = True
    status: Literal["joined", "requested"]
    message: str


class MemberResponse(APIModel):
    id: int
    role: str
    created_at: datetime
    user: UserSummary


class MemberPage(PageMeta):
    members: list[MemberResponse]


class RoleUpdate(APIModel):
    # Checked by the access policy so the role error keeps its place in the rule order.
    role: str


class RoleUpdateResponse(APIModel):
    message: str
    member: MemberResponse


class JoinRequestResponse(APIModel):
    id: int
    status: str
    created_at: datetime
    user: UserSummary


class JoinRequestPage(PageMeta):
    requests: list[JoinRequestResponse]


class DecisionRequest(APIModel):
    action: Literal["accept", "reject"]


class InviteRequest(APIModel):
    username: str = Field(..., min_length=1, max_length=64)


class InvitationCommunity(APIModel):
    id: int
    name: str
    image: str | None = None
    visibility: str


class InvitationResponse(APIModel):
    id: int
    status: str
    created_at: datetime
    community: InvitationCommunity
    inviter: UserSummary


class InvitationPage(PageMeta):
    invitations: list[InvitationResponse]


class BulkInviteRequest(APIModel):
    usernames: list[str] = Field(..., min_length=1, max_length=50)
    message: str | None = Field(None, max_length=500)


class InvitedUser(APIModel):
    """An invitation created by a bulk invite; ``id`` is the invitation id."""

    id: int
    username: str | None = None
    name: str | None = None


class BulkInviteResponse(APIModel):
    invited: int
    already_members: list[str]
    already_invited: list[str]
    not_found: list[str]
    invitations: list[InvitedUser]


class InvitationCounts(APIModel):
    pending: int
    accepted: int
    rejected: int
    total: int


class SentInvitation(APIModel):
    id: int
    status: str
    created_at: datetime
    invitee: UserSummary
    inviter: UserSummary


class InvitationStatsResponse(APIModel):
    stats: InvitationCounts
    recent_invitations: list[SentInvitation]
